"""
Standalone animated SVG export.

Converts an icon's animation preset into native SMIL elements
(``<animate>``/``<animateTransform>``) so the exported file animates without
any JavaScript runtime.
"""

import re
from typing import Dict, Optional

_SVG_INNER = re.compile(r"<svg[^>]*>([\s\S]*)</svg>", re.IGNORECASE)
_VIEWBOX = re.compile(r'viewBox\s*=\s*"([^"]*)"')

DEFAULT_VIEWBOX = "0 0 24 24"

# {dur} is substituted with the formatted duration, e.g. "0.5s"
_SMIL_TEMPLATES: Dict[str, str] = {
    "scale": '<animateTransform attributeName="transform" type="scale" values="1;1.2;1" dur="{dur}" repeatCount="indefinite" />',
    "rotate": '<animateTransform attributeName="transform" type="rotate" values="0 12 12;15 12 12;-15 12 12;0 12 12" dur="{dur}" repeatCount="indefinite" />',
    "translate": '<animateTransform attributeName="transform" type="translate" values="0,0;-2,-2;2,0;0,0" dur="{dur}" repeatCount="indefinite" />',
    "shake": '<animateTransform attributeName="transform" type="translate" values="0,0;-4,0;4,0;-4,0;4,0;0,0" dur="{dur}" repeatCount="indefinite" />',
    "pulse": (
        '<animateTransform attributeName="transform" type="scale" values="1;1.1;1" dur="{dur}" repeatCount="indefinite" />\n'
        '    <animate attributeName="opacity" values="1;0.8;1" dur="{dur}" repeatCount="indefinite" />'
    ),
    "bounce": '<animateTransform attributeName="transform" type="translate" values="0,0;0,-6;0,0" dur="{dur}" repeatCount="indefinite" calcMode="spline" keySplines="0.42 0 0.58 1;0.42 0 0.58 1" />',
    "spin": '<animateTransform attributeName="transform" type="rotate" from="0 12 12" to="360 12 12" dur="{dur}" repeatCount="indefinite" />',
    "ring": '<animateTransform attributeName="transform" type="rotate" values="0 12 12;15 12 12;-15 12 12;10 12 12;-10 12 12;5 12 12;0 12 12" dur="{dur}" repeatCount="indefinite" />',
    "wiggle": '<animateTransform attributeName="transform" type="rotate" values="0 12 12;-8 12 12;8 12 12;-5 12 12;5 12 12;0 12 12" dur="{dur}" repeatCount="indefinite" />',
    "heartbeat": '<animateTransform attributeName="transform" type="scale" values="1;1.15;1;1.1;1" dur="{dur}" repeatCount="indefinite" />',
    "swing": '<animateTransform attributeName="transform" type="rotate" values="0 12 12;12 12 12;-12 12 12;6 12 12;-6 12 12;0 12 12" dur="{dur}" repeatCount="indefinite" />',
    "float": '<animateTransform attributeName="transform" type="translate" values="0,0;0,-4;0,0" dur="{dur}" repeatCount="indefinite" calcMode="spline" keySplines="0.42 0 0.58 1;0.42 0 0.58 1" />',
    "draw": (
        '<animate attributeName="stroke-dashoffset" values="100;0" dur="{dur}" fill="freeze" />\n'
        '    <animate attributeName="stroke-dasharray" values="0 100;100 0" dur="{dur}" fill="freeze" />'
    ),
}

ANIMATION_NAMES = tuple(_SMIL_TEMPLATES)


def format_duration(duration: float) -> str:
    """Seconds as an SVG clock value: 0.5 -> "0.5s", 1.0 -> "1s"."""
    return f"{duration:g}s"


def build_svg_animation(animation: str, duration: float) -> Optional[str]:
    template = _SMIL_TEMPLATES.get(animation)
    if template is None:
        return None
    return template.replace("{dur}", format_duration(duration))


def generate_animated_svg(svg_code: str, animation: str, duration: float = 0.5) -> str:
    """
    Wrap the icon's content in a ``<g>`` carrying the SMIL animation.

    Unknown animations return ``svg_code`` unchanged.
    """
    smil = build_svg_animation(animation, duration)
    if smil is None:
        return svg_code

    inner_match = _SVG_INNER.search(svg_code)
    inner = inner_match.group(1).strip() if inner_match else ""
    view_box_match = _VIEWBOX.search(svg_code)
    view_box = view_box_match.group(1) if view_box_match else DEFAULT_VIEWBOX

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{view_box}" fill="currentColor">\n'
        f"  <g>\n"
        f"    {smil}\n"
        f"    {inner}\n"
        f"  </g>\n"
        f"</svg>"
    )


def add_export_size(svg: str, size: int) -> str:
    """Add explicit width/height to the root element for fixed-size exports."""
    return re.sub(r"<svg([^>]*)>", rf'<svg\1 width="{size}" height="{size}">', svg, count=1)
