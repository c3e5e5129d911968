"""
CDN bundle builder.

``build_cdn_bundle`` produces the self-executing script served from
``/api/cdn/{user_id}/icons.js``. Pages include the script and drop
``<i data-lively="slug"></i>`` placeholders; the script swaps each
placeholder for an ``<svg><use href="#li-slug"/></svg>`` that references a
shared sprite, then wires hover triggers.

SVG markup is parsed with ``DOMParser`` and imported with
``document.importNode``; the bundle never assigns ``innerHTML``.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from .animated_export import format_duration
from .script_utils import js_comment_safe, js_literal

# CSS keyframes for the CDN runtime; names are prefixed with "li-"
_KEYFRAMES: Dict[str, str] = {
    "scale": "0%,100%{transform:scale(1)}50%{transform:scale(1.2)}",
    "rotate": "0%,100%{transform:rotate(0)}25%{transform:rotate(15deg)}75%{transform:rotate(-15deg)}",
    "translate": "0%,100%{transform:translate(0,0)}33%{transform:translate(-2px,-2px)}66%{transform:translate(2px,0)}",
    "shake": "0%,100%{transform:translateX(0)}20%,60%{transform:translateX(-4px)}40%,80%{transform:translateX(4px)}",
    "pulse": "0%,100%{transform:scale(1);opacity:1}50%{transform:scale(1.1);opacity:.8}",
    "bounce": "0%,100%{transform:translateY(0)}50%{transform:translateY(-6px)}",
    "float": "0%,100%{transform:translateY(0)}50%{transform:translateY(-4px)}",
    "spin": "from{transform:rotate(0)}to{transform:rotate(360deg)}",
    "ring": "0%,100%{transform:rotate(0)}15%{transform:rotate(15deg)}30%{transform:rotate(-15deg)}45%{transform:rotate(10deg)}60%{transform:rotate(-10deg)}75%{transform:rotate(5deg)}",
    "wiggle": "0%,100%{transform:rotate(0)}20%{transform:rotate(-8deg)}40%{transform:rotate(8deg)}60%{transform:rotate(-5deg)}80%{transform:rotate(5deg)}",
    "heartbeat": "0%,100%{transform:scale(1)}20%{transform:scale(1.15)}40%{transform:scale(1)}60%{transform:scale(1.1)}",
    "swing": "0%,100%{transform:rotate(0)}20%{transform:rotate(12deg)}40%{transform:rotate(-12deg)}60%{transform:rotate(6deg)}80%{transform:rotate(-6deg)}",
    "draw": "from{stroke-dashoffset:100}to{stroke-dashoffset:0}",
}


@dataclass(frozen=True)
class CdnIcon:
    slug: str
    svg_code: str
    animation: str
    trigger: str
    duration: float = 0.5


def build_keyframes_css(animations: Sequence[str]) -> str:
    """Keyframes for the distinct, known animations in first-seen order."""
    rules: List[str] = []
    seen = set()
    for animation in animations:
        if animation in seen or animation not in _KEYFRAMES:
            continue
        seen.add(animation)
        rules.append(f"@keyframes li-{animation}{{{_KEYFRAMES[animation]}}}")
    rules.append("[data-li-rendered]{display:inline-block;width:1em;height:1em;transform-origin:center}")
    return "".join(rules)


def build_cdn_bundle(user_id: str, icons: Sequence[CdnIcon]) -> str:
    data = [
        {
            "slug": icon.slug,
            "svg": icon.svg_code,
            "animation": icon.animation,
            "trigger": icon.trigger,
            "duration": format_duration(icon.duration),
        }
        for icon in icons
    ]
    css = build_keyframes_css([icon.animation for icon in icons])

    return f"""/* Lively Icons CDN bundle for {js_comment_safe(user_id)} ({len(data)} icons) */
(function(){{
  if (window.__livelyIconsLoaded) return;
  window.__livelyIconsLoaded = true;

  var ICONS = {js_literal(data)};
  var CSS = {js_literal(css)};
  var SVG_NS = 'http://www.w3.org/2000/svg';
  var parser = new DOMParser();
  var bySlug = {{}};

  function injectStyles() {{
    var style = document.createElement('style');
    style.setAttribute('data-lively-icons', '');
    style.appendChild(document.createTextNode(CSS));
    document.head.appendChild(style);
  }}

  function buildSprite() {{
    var sprite = document.createElementNS(SVG_NS, 'svg');
    sprite.setAttribute('aria-hidden', 'true');
    sprite.setAttribute('style', 'position:absolute;width:0;height:0;overflow:hidden');
    ICONS.forEach(function(icon) {{
      bySlug[icon.slug] = icon;
      var doc = parser.parseFromString(icon.svg, 'image/svg+xml');
      var root = doc.documentElement;
      if (!root || root.nodeName !== 'svg') return;
      var symbol = document.createElementNS(SVG_NS, 'symbol');
      symbol.setAttribute('id', 'li-' + icon.slug);
      symbol.setAttribute('viewBox', root.getAttribute('viewBox') || '0 0 24 24');
      while (root.firstChild) {{
        symbol.appendChild(document.importNode(root.firstChild, true));
        root.removeChild(root.firstChild);
      }}
      sprite.appendChild(symbol);
    }});
    document.body.insertBefore(sprite, document.body.firstChild);
  }}

  function animationValue(icon) {{
    var iterations = icon.trigger === 'loop' ? ' infinite' : '';
    return 'li-' + icon.animation + ' ' + icon.duration + ' ease-in-out' + iterations;
  }}

  function render(placeholder) {{
    var icon = bySlug[placeholder.getAttribute('data-lively')];
    if (!icon || !placeholder.parentNode) return;
    var svg = document.createElementNS(SVG_NS, 'svg');
    svg.setAttribute('data-li-rendered', icon.slug);
    svg.setAttribute('fill', 'currentColor');
    svg.setAttribute('role', 'img');
    var label = placeholder.getAttribute('aria-label');
    if (label) svg.setAttribute('aria-label', label);
    var cls = placeholder.getAttribute('class');
    if (cls) svg.setAttribute('class', cls);
    var use = document.createElementNS(SVG_NS, 'use');
    use.setAttribute('href', '#li-' + icon.slug);
    svg.appendChild(use);

    if (icon.trigger === 'hover') {{
      svg.addEventListener('mouseenter', function() {{ svg.style.animation = animationValue(icon); }});
      svg.addEventListener('mouseleave', function() {{ svg.style.animation = ''; }});
    }} else {{
      svg.style.animation = animationValue(icon);
    }}

    placeholder.parentNode.insertBefore(svg, placeholder);
    placeholder.parentNode.removeChild(placeholder);
  }}

  function renderAll() {{
    var placeholders = document.querySelectorAll('i[data-lively]');
    for (var i = 0; i < placeholders.length; i++) render(placeholders[i]);
  }}

  function init() {{
    injectStyles();
    buildSprite();
    renderAll();
    window.LivelyIcons = {{ render: renderAll, icons: ICONS.map(function(i) {{ return i.slug; }}) }};
  }}

  if (document.readyState === 'loading') {{
    document.addEventListener('DOMContentLoaded', init);
  }} else {{
    init();
  }}
}})();
"""
