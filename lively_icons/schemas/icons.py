"""
Schemas for icon generation and the personal icon library.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import Field

from ..core.constants import (
    MAX_ANIMATED_EXPORT_SIZE,
    MAX_BATCH_PROMPTS,
    MAX_PROMPT_LENGTH,
    MAX_SVG_LENGTH,
    MIN_ANIMATED_EXPORT_SIZE,
    MIN_PROMPT_LENGTH,
    MIN_SVG_EDIT_LENGTH,
)
from ..core.enums import IconStyle
from .base import CamelModel, CamelRequestModel


class GenerateIconRequest(CamelRequestModel):
    prompt: str = Field(..., min_length=MIN_PROMPT_LENGTH, max_length=MAX_PROMPT_LENGTH)
    style: IconStyle
    animation: Optional[str] = None
    trigger: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0.1, le=3)
    team_id: Optional[str] = Field(None, description="Generate in a team context, charging team tokens")


class RefineIconRequest(CamelRequestModel):
    icon_id: str
    instruction: str = Field(..., min_length=MIN_PROMPT_LENGTH, max_length=MAX_PROMPT_LENGTH)
    team_id: Optional[str] = None


class GenerateIconResponse(CamelModel):
    icon_id: str
    svg_code: str
    component_code: str
    suggested_animation: str
    suggested_trigger: str
    tokens_remaining: int


class ReferenceIconResponse(GenerateIconResponse):
    reference_image_url: Optional[str] = None


class RefineIconResponse(CamelModel):
    icon_id: str
    parent_icon_id: str
    svg_code: str
    component_code: str
    tokens_remaining: int


class BatchRequest(CamelRequestModel):
    prompts: List[Annotated[str, Field(min_length=MIN_PROMPT_LENGTH, max_length=MAX_PROMPT_LENGTH)]] = Field(
        ..., min_length=1, max_length=MAX_BATCH_PROMPTS
    )
    style: IconStyle
    animation: Optional[str] = None
    trigger: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0.1, le=3)
    team_id: Optional[str] = None


class BatchQueuedResponse(CamelModel):
    batch_id: str
    status: str
    total_prompts: int
    tokens_cost: int
    tokens_remaining: int


class BatchIconSummary(CamelModel):
    id: str
    name: str
    svg_code: str


class BatchStatusResponse(CamelModel):
    batch_id: str
    status: str
    total_prompts: int
    completed_count: int
    failed_count: int
    icons: List[BatchIconSummary]
    created_at: datetime
    completed_at: Optional[datetime] = None


# Library


class IconResponse(CamelModel):
    """A library icon as returned to its owner."""

    id: str
    name: str
    prompt: str
    style: str
    animation: str
    trigger: str
    svg_code: str
    component_code: str
    preview_url: str = ""
    tags: Optional[List[str]] = None
    color: Optional[str] = None
    stroke_weight: Optional[float] = None
    duration: Optional[float] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class TeamIconResponse(IconResponse):
    clerk_user_id: str
    team_id: Optional[str] = None


class IconListResponse(CamelModel):
    icons: List[IconResponse]
    count: int


class IconEnvelope(CamelModel):
    icon: IconResponse


class IconUpdateRequest(CamelRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    tags: Optional[List[str]] = None
    animation: Optional[str] = None
    trigger: Optional[str] = None
    color: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0.1, le=3)


class SvgEditRequest(CamelRequestModel):
    svg_code: str = Field(..., min_length=MIN_SVG_EDIT_LENGTH, max_length=MAX_SVG_LENGTH)


class EditedIcon(CamelModel):
    id: str
    svg_code: str
    component_code: str


class SvgEditResponse(CamelModel):
    icon: EditedIcon
    warnings: List[str] = Field(default_factory=list)


class AnimatedExportRequest(CamelRequestModel):
    format: Literal["animated-svg", "gif"]
    size: int = Field(256, ge=MIN_ANIMATED_EXPORT_SIZE, le=MAX_ANIMATED_EXPORT_SIZE)
    fps: int = Field(15, ge=10, le=30)
