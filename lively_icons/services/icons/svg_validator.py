"""
SVG validation and normalization for AI-generated markup.

Every SVG that reaches storage passes through ``validate_and_normalize_svg``:
the upstream model may wrap the markup in prose or code fences, emit
scripts or event handlers, or hard-code black fills that break theming.
"""

from dataclasses import dataclass, field
import re
from typing import List, Optional

from ...core.constants import MAX_SVG_LENGTH

MAX_SHAPE_COUNT = 30

_SVG_BLOCK = re.compile(r"<svg[\s\S]*</svg>", re.IGNORECASE)
_CODE_FENCE = re.compile(r"```(?:xml|svg|html)?\s*\n?([\s\S]*?)\n?```")
_SHAPE_ELEMENT = re.compile(r"<(path|circle|rect|ellipse|line|polyline|polygon)\b")
_HAS_VIEWBOX = re.compile(r"viewBox\s*=")
_WIDTH = re.compile(r'\bwidth\s*=\s*"(\d+)"')
_HEIGHT = re.compile(r'\bheight\s*=\s*"(\d+)"')

_DANGEROUS = (
    re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE),
    re.compile(r"<foreignObject[\s\S]*?</foreignObject>", re.IGNORECASE),
    re.compile(r'\bon\w+\s*=\s*"[^"]*"', re.IGNORECASE),
    re.compile(r"\bon\w+\s*=\s*'[^']*'", re.IGNORECASE),
    re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE),
)

_BLACK = r"(?:#000(?:000)?|black|rgb\(0,\s*0,\s*0\))"
_BLACK_FILL = re.compile(r'fill\s*=\s*"' + _BLACK + '"', re.IGNORECASE)
_BLACK_STROKE = re.compile(r'stroke\s*=\s*"' + _BLACK + '"', re.IGNORECASE)

_WHITESPACE = re.compile(r"\s+")


@dataclass
class SvgValidationResult:
    valid: bool
    svg: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_and_normalize_svg(raw_svg: str) -> SvgValidationResult:
    """
    Validate raw model output and return a sanitized, normalized SVG.

    The pipeline stops at the first structural error; warnings never make the
    result invalid.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if len(raw_svg) > MAX_SVG_LENGTH:
        errors.append(f"SVG exceeds maximum size of {MAX_SVG_LENGTH // 1000}KB")
        return SvgValidationResult(False, raw_svg, errors, warnings)

    svg = extract_svg_content(raw_svg)
    if svg is None:
        errors.append("No valid SVG element found in response")
        return SvgValidationResult(False, raw_svg, errors, warnings)

    if "</svg>" not in svg:
        errors.append("SVG is missing closing tag")
        return SvgValidationResult(False, svg, errors, warnings)

    shape_count = len(_SHAPE_ELEMENT.findall(svg))
    if shape_count > MAX_SHAPE_COUNT:
        warnings.append(
            f"SVG has {shape_count} shape elements (recommended max: {MAX_SHAPE_COUNT})"
        )
    if shape_count == 0:
        errors.append("SVG contains no drawable elements")
        return SvgValidationResult(False, svg, errors, warnings)

    svg = normalize_view_box(svg)
    svg = strip_dangerous_elements(svg)
    svg = normalize_colors(svg)
    svg = _WHITESPACE.sub(" ", svg).strip()

    return SvgValidationResult(not errors, svg, errors, warnings)


def extract_svg_content(raw: str) -> Optional[str]:
    """Return the ``<svg>...</svg>`` block, looking inside a code fence if needed."""
    match = _SVG_BLOCK.search(raw)
    if match:
        return match.group(0)

    fence = _CODE_FENCE.search(raw)
    if fence:
        inner = _SVG_BLOCK.search(fence.group(1))
        if inner:
            return inner.group(0)
    return None


def normalize_view_box(svg: str) -> str:
    if _HAS_VIEWBOX.search(svg):
        return svg

    width = _WIDTH.search(svg)
    height = _HEIGHT.search(svg)
    if width and height:
        view_box = f'viewBox="0 0 {width.group(1)} {height.group(1)}"'
    else:
        view_box = 'viewBox="0 0 24 24"'
    return svg.replace("<svg", f"<svg {view_box}", 1)


def strip_dangerous_elements(svg: str) -> str:
    """Remove scripts, foreignObject, inline event handlers and style blocks."""
    for pattern in _DANGEROUS:
        svg = pattern.sub("", svg)
    return svg


def normalize_colors(svg: str) -> str:
    svg = _BLACK_FILL.sub('fill="currentColor"', svg)
    return _BLACK_STROKE.sub('stroke="currentColor"', svg)
