"""
Component code generators.

Turns a validated SVG plus its animation preset into copy-pasteable code for
React (motion), Vue single-file components and plain HTML/CSS.
"""

import json
import re
from typing import Any, Dict

from ...core.enums import ExportFormat

DEFAULT_SVG_ATTRIBUTES = 'viewBox="0 0 24 24" fill="none"'

_SVG_INNER = re.compile(r"<svg[^>]*>([\s\S]*)</svg>", re.IGNORECASE)
_SVG_OPEN_TAG = re.compile(r"<svg([^>]*)>", re.IGNORECASE)
_DROPPED_ATTRIBUTES = (
    re.compile(r'xmlns\s*=\s*"[^"]*"'),
    re.compile(r'class\s*=\s*"[^"]*"'),
    re.compile(r'style\s*=\s*"[^"]*"'),
    re.compile(r'width\s*=\s*"[^"]*"'),
    re.compile(r'height\s*=\s*"[^"]*"'),
)


def to_pascal_case(name: str) -> str:
    words = re.sub(r"[^a-zA-Z0-9\s]", " ", name).split()
    return "".join(word[:1].upper() + word[1:].lower() for word in words)


def extract_svg_inner(svg: str) -> str:
    match = _SVG_INNER.search(svg)
    return match.group(1).strip() if match else ""


def extract_svg_attributes(svg: str) -> str:
    """Root attributes minus the ones the component controls itself."""
    match = _SVG_OPEN_TAG.search(svg)
    if not match:
        return DEFAULT_SVG_ATTRIBUTES
    attrs = match.group(1)
    for pattern in _DROPPED_ATTRIBUTES:
        attrs = pattern.sub("", attrs)
    attrs = attrs.strip()
    return attrs or DEFAULT_SVG_ATTRIBUTES


def _indent(content: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(f"{pad}{line.strip()}" for line in content.split("\n") if line.strip())


def _variants(animation: str, duration: float) -> Dict[str, Dict[str, Any]]:
    d = duration
    table: Dict[str, Dict[str, Dict[str, Any]]] = {
        "scale": {
            "initial": {"scale": 1},
            "animate": {"scale": [1, 1.2, 1], "transition": {"duration": d}},
        },
        "rotate": {
            "initial": {"rotate": 0},
            "animate": {"rotate": [0, 15, -15, 0], "transition": {"duration": d}},
        },
        "translate": {
            "initial": {"x": 0, "y": 0},
            "animate": {"x": [0, -2, 2, 0], "y": [0, -2, 0], "transition": {"duration": d}},
        },
        "shake": {
            "initial": {"x": 0},
            "animate": {"x": [0, -4, 4, -4, 4, 0], "transition": {"duration": d}},
        },
        "pulse": {
            "initial": {"scale": 1, "opacity": 1},
            "animate": {
                "scale": [1, 1.1, 1],
                "opacity": [1, 0.8, 1],
                "transition": {"duration": d},
            },
        },
        "bounce": {
            "initial": {"y": 0},
            "animate": {"y": [0, -6, 0], "transition": {"duration": d, "ease": "easeInOut"}},
        },
        "draw": {
            "initial": {"pathLength": 0},
            "animate": {"pathLength": 1, "transition": {"duration": d, "ease": "easeInOut"}},
        },
        "spin": {
            "initial": {"rotate": 0},
            "animate": {"rotate": 360, "transition": {"duration": d, "ease": "linear"}},
        },
        "ring": {
            "initial": {"rotate": 0},
            "animate": {"rotate": [0, 15, -15, 10, -10, 5, 0], "transition": {"duration": d}},
        },
        "wiggle": {
            "initial": {"rotate": 0},
            "animate": {"rotate": [0, -8, 8, -5, 5, 0], "transition": {"duration": d}},
        },
        "heartbeat": {
            "initial": {"scale": 1},
            "animate": {"scale": [1, 1.15, 1, 1.1, 1], "transition": {"duration": d}},
        },
        "swing": {
            "initial": {"rotate": 0},
            "animate": {"rotate": [0, 12, -12, 6, -6, 0], "transition": {"duration": d}},
        },
        "float": {
            "initial": {"y": 0},
            "animate": {
                "y": [0, -4, 0],
                "transition": {"duration": d, "repeat": "Infinity", "ease": "easeInOut"},
            },
        },
        "none": {"initial": {}, "animate": {}},
    }
    return table.get(animation, table["scale"])


def _variants_literal(animation: str, duration: float) -> str:
    literal = json.dumps(_variants(animation, duration), indent=2)
    # Infinity is a JS identifier, not a string
    return literal.replace('"Infinity"', "Infinity")


_TRIGGER_PROPS = {
    "hover": "",
    "loop": 'animate="animate" transition={{ repeat: Infinity }}',
    "mount": 'animate="animate"',
    "inView": 'whileInView="animate" viewport={{ once: true }}',
}

_CSS_KEYFRAMES = {
    "scale": """@keyframes lively-scale {
  0%, 100% { transform: scale(1); }
  50% { transform: scale(1.2); }
}""",
    "rotate": """@keyframes lively-rotate {
  0%, 100% { transform: rotate(0deg); }
  25% { transform: rotate(15deg); }
  75% { transform: rotate(-15deg); }
}""",
    "shake": """@keyframes lively-shake {
  0%, 100% { transform: translateX(0); }
  20% { transform: translateX(-4px); }
  40% { transform: translateX(4px); }
  60% { transform: translateX(-4px); }
  80% { transform: translateX(4px); }
}""",
    "pulse": """@keyframes lively-pulse {
  0%, 100% { transform: scale(1); opacity: 1; }
  50% { transform: scale(1.1); opacity: 0.8; }
}""",
    "bounce": """@keyframes lively-bounce {
  0%, 100% { transform: translateY(0); }
  50% { transform: translateY(-6px); }
}""",
    "spin": """@keyframes lively-spin {
  from { transform: rotate(0deg); }
  to { transform: rotate(360deg); }
}""",
    "heartbeat": """@keyframes lively-heartbeat {
  0%, 100% { transform: scale(1); }
  20% { transform: scale(1.15); }
  40% { transform: scale(1); }
  60% { transform: scale(1.1); }
}""",
    "float": """@keyframes lively-float {
  0%, 100% { transform: translateY(0); }
  50% { transform: translateY(-4px); }
}""",
}


def css_animation(animation: str, duration: float) -> str:
    """CSS rules plus keyframes; animations without CSS keyframes fall back to scale."""
    name = animation if animation in _CSS_KEYFRAMES else "scale"
    return f""".lively-icon svg {{
  transition: transform {duration:g}s ease;
}}

.lively-icon.animate svg,
.lively-icon:hover svg {{
  animation: lively-{name} {duration:g}s ease;
}}

{_CSS_KEYFRAMES[name]}"""


def generate_react_component(
    svg_code: str, name: str, animation: str, trigger: str, duration: float = 0.5
) -> str:
    component = to_pascal_case(name)
    content = extract_svg_inner(svg_code)
    attrs = extract_svg_attributes(svg_code)
    hover_handler = "handleTrigger" if trigger == "hover" else "undefined"

    return f"""'use client';

import {{ type SVGProps, type RefObject }} from 'react';
import {{ motion, useAnimation }} from 'motion/react';
import type {{ Variants }} from 'motion/react';

const variants: Variants = {_variants_literal(animation, duration)};

const {component} = (props: SVGProps<SVGSVGElement> & {{ ref?: RefObject<SVGSVGElement> }}) => {{
  const controls = useAnimation();

  const handleTrigger = () => {{
    controls.start('animate');
  }};

  return (
    <motion.svg
      xmlns="http://www.w3.org/2000/svg"
      {attrs}
      variants={{variants}}
      initial="initial"
      {_TRIGGER_PROPS.get(trigger, "")}
      animate={{controls}}
      onHoverStart={{{hover_handler}}}
      {{...props}}
    >
{_indent(content, 6)}
    </motion.svg>
  );
}};

{component}.displayName = '{component}';

export default {component};
"""


def generate_vue_component(
    svg_code: str, name: str, animation: str, trigger: str, duration: float = 0.5
) -> str:
    component = to_pascal_case(name)
    content = extract_svg_inner(svg_code)
    attrs = extract_svg_attributes(svg_code)
    if trigger == "hover":
        events = (
            " @mouseenter=\"$el.classList.add('animate')\""
            " @mouseleave=\"$el.classList.remove('animate')\""
        )
        classes = "lively-icon"
    else:
        events = ""
        # loop and mount play immediately
        classes = "lively-icon animate"

    return f"""<script setup lang="ts">
defineOptions({{ name: '{component}' }});
</script>

<template>
  <span class="{classes} {component.lower()}-icon"{events}>
    <svg
      xmlns="http://www.w3.org/2000/svg"
      {attrs}
    >
{_indent(content, 6)}
    </svg>
  </span>
</template>

<style scoped>
{css_animation(animation, duration)}
</style>
"""


def generate_html_snippet(
    svg_code: str, name: str, animation: str, trigger: str, duration: float = 0.5
) -> str:
    if trigger == "hover":
        events = (
            " onmouseenter=\"this.classList.add('animate')\""
            " onmouseleave=\"this.classList.remove('animate')\""
        )
    else:
        events = ""

    return f"""<!-- Lively Icons: {name} -->
<div class="lively-icon"{events}>
  {svg_code}
</div>

<style>
{css_animation(animation, duration)}
</style>
"""


def generate_component_code(
    svg_code: str,
    name: str,
    animation: str,
    trigger: str,
    export_format: str = ExportFormat.REACT.value,
    duration: float = 0.5,
) -> str:
    """Dispatch on export format; ``svg`` (and anything unknown) returns the SVG as is."""
    if export_format == ExportFormat.REACT.value:
        return generate_react_component(svg_code, name, animation, trigger, duration)
    if export_format == ExportFormat.VUE.value:
        return generate_vue_component(svg_code, name, animation, trigger, duration)
    if export_format == ExportFormat.HTML.value:
        return generate_html_snippet(svg_code, name, animation, trigger, duration)
    return svg_code
