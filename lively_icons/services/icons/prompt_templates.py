"""Prompt construction for the icon generation model and preset suggestions."""

import re
from typing import Dict, List, Tuple

STYLE_DIRECTIVES: Dict[str, str] = {
    "line": "Style: Thin line art with 1.5-2px strokes. No fills, outlines only. Clean, minimal aesthetic similar to Lucide or Feather icons.",
    "solid": "Style: Solid filled glyph. Bold, filled shapes with no strokes. High contrast, like Material Symbols Filled.",
    "outline": "Style: Medium-weight outlined icon with 2px strokes and occasional filled accents. Similar to Heroicons outline variant.",
    "duotone": "Style: Two-tone icon with a primary stroke layer and a secondary fill layer at 20% opacity. Use two distinct visual layers.",
    "pixel": "Style: Pixel art icon on an implied 16x16 or 24x24 grid. Sharp edges, no anti-aliasing, retro aesthetic.",
    "isometric": "Style: Isometric 3D projection. Use 30-degree angles for depth. Clean vector lines, no shading.",
    "hand-drawn": "Style: Hand-drawn, slightly irregular strokes. Organic feel with subtle wobble in paths. Sketch-like quality.",
}

_REQUIREMENTS: List[str] = [
    "Requirements:",
    "- Simple, clean vector icon suitable for UI/web use",
    "- Single color (currentColor), no gradients unless duotone style",
    "- Centered in a square viewBox",
    "- Maximum 20 paths, minimal complexity",
    "- No text, no background, no border",
    "- 24x24 base grid, stroke-based where appropriate",
]


def build_icon_prompt(user_prompt: str, style: str) -> str:
    return "\n".join(
        [f"Create a single vector icon: {user_prompt}.", STYLE_DIRECTIVES.get(style, ""), *_REQUIREMENTS]
    )


def build_refinement_prompt(original_prompt: str, instruction: str, style: str) -> str:
    """Prompt for regenerating an existing icon with a user's change request."""
    return "\n".join(
        [
            f"Refine this vector icon. Original description: {original_prompt}.",
            f"Requested change: {instruction}.",
            STYLE_DIRECTIVES.get(style, ""),
            "Keep the same overall concept, composition and proportions unless the change requires otherwise.",
            *_REQUIREMENTS,
        ]
    )


# First match wins
_ANIMATION_KEYWORDS: List[Tuple[str, str]] = [
    (r"\b(heart|love|like)\b", "heartbeat"),
    (r"\b(bell|notification|alert)\b", "ring"),
    (r"\b(loading|refresh|sync|spinner)\b", "spin"),
    (r"\b(arrow|send|mail|rocket|plane)\b", "translate"),
    (r"\b(check|success|done|complete)\b", "scale"),
    (r"\b(warning|error|danger)\b", "shake"),
    (r"\b(star|sparkle|magic)\b", "pulse"),
    (r"\b(download|up|down)\b", "bounce"),
    (r"\b(edit|pen|pencil|write)\b", "draw"),
    (r"\b(wave|hand|hello|hi)\b", "wiggle"),
    (r"\b(music|note|sound)\b", "swing"),
    (r"\b(cloud|balloon|bubble)\b", "float"),
    (r"\b(rotate|turn|cycle)\b", "rotate"),
]

_TRIGGER_KEYWORDS: List[Tuple[str, str]] = [
    (r"\b(loading|spinner|progress)\b", "loop"),
    (r"\b(notification|alert|badge)\b", "mount"),
]


def suggest_animation(prompt: str) -> str:
    lower = prompt.lower()
    for pattern, animation in _ANIMATION_KEYWORDS:
        if re.search(pattern, lower):
            return animation
    return "scale"


def suggest_trigger(prompt: str) -> str:
    lower = prompt.lower()
    for pattern, trigger in _TRIGGER_KEYWORDS:
        if re.search(pattern, lower):
            return trigger
    return "hover"
