"""Embeddable script for publicly shared collections."""

from dataclasses import dataclass
from typing import Optional, Sequence

from .script_utils import js_comment_safe, js_literal


@dataclass(frozen=True)
class EmbedIcon:
    name: str
    svg_code: str
    style: str


def build_embed_script(
    slug: str, collection_name: Optional[str], icons: Sequence[EmbedIcon], app_url: str
) -> str:
    """
    Build ``/api/shared/{slug}/embed.js``.

    The script exposes ``window.__livelySharedCollection`` and, when loaded
    from a ``<script data-target="...">`` tag, renders the grid into that
    element (or right after the script tag). SVGs are inserted through
    ``DOMParser``.
    """
    name = collection_name or "Unknown"
    data = [{"name": icon.name, "svg": icon.svg_code, "style": icon.style} for icon in icons]

    return f"""// Lively Icons - Shared Collection: {js_comment_safe(name)}
// {js_comment_safe(app_url)}/shared/{js_comment_safe(slug)}
(function() {{
  var icons = {js_literal(data)};
  var parser = new DOMParser();
  var script = document.currentScript;

  function renderInto(el) {{
    icons.forEach(function(icon) {{
      var div = document.createElement('div');
      div.className = 'lively-icon';
      div.title = icon.name;
      var doc = parser.parseFromString(icon.svg, 'image/svg+xml');
      var svgEl = doc.documentElement;
      if (svgEl && svgEl.nodeName === 'svg') {{
        div.appendChild(document.importNode(svgEl, true));
      }}
      el.appendChild(div);
    }});
  }}

  window.__livelySharedCollection = {{
    name: {js_literal(name)},
    slug: {js_literal(slug)},
    icons: icons,
    getIcon: function(name) {{
      return icons.find(function(i) {{ return i.name === name; }});
    }},
    renderAll: function(container) {{
      var el = typeof container === 'string' ? document.querySelector(container) : container;
      if (el) renderInto(el);
    }}
  }};

  if (script && script.parentNode) {{
    var target = script.getAttribute('data-target');
    var el = target ? document.querySelector(target) : null;
    if (!el) {{
      el = document.createElement('div');
      el.className = 'lively-collection-grid';
      el.style.display = 'grid';
      el.style.gridTemplateColumns = 'repeat(auto-fill, minmax(48px, 1fr))';
      el.style.gap = '12px';
      script.parentNode.insertBefore(el, script.nextSibling);
    }}
    renderInto(el);
  }}
}})();"""
