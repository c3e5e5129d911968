"""Keyword-based moderation applied to prompts before they reach the model."""

from dataclasses import dataclass
import re
from typing import Optional

from ...core.constants import MAX_PROMPT_LENGTH, MIN_PROMPT_LENGTH

BLOCKED_PATTERNS = (
    re.compile(r"\b(nude|naked|nsfw|porn|xxx|hentai|explicit)\b", re.IGNORECASE),
    re.compile(r"\b(weapon|gun|rifle|pistol|bomb|explosive|grenade)\b", re.IGNORECASE),
    re.compile(r"\b(hate|nazi|swastika|kkk|slur)\b", re.IGNORECASE),
    re.compile(r"\b(drug|cocaine|heroin|meth)\b", re.IGNORECASE),
    re.compile(r"\b(gore|blood|mutilat|dismember)\b", re.IGNORECASE),
)

POLICY_VIOLATION_MESSAGE = (
    "Your prompt contains content that violates our usage policy. Please modify your description."
)


@dataclass(frozen=True)
class ModerationResult:
    allowed: bool
    reason: Optional[str] = None


def moderate_prompt(prompt: str) -> ModerationResult:
    if len(prompt) > MAX_PROMPT_LENGTH:
        return ModerationResult(
            False, f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters."
        )
    if len(prompt.strip()) < MIN_PROMPT_LENGTH:
        return ModerationResult(
            False, "Prompt is too short. Please provide a more detailed description."
        )
    for pattern in BLOCKED_PATTERNS:
        if pattern.search(prompt):
            return ModerationResult(False, POLICY_VIOLATION_MESSAGE)
    return ModerationResult(True)
