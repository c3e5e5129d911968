"""Style template schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..core.enums import IconStyle
from .base import CamelModel, CamelRequestModel


class TemplateResponse(CamelModel):
    id: str
    clerk_user_id: str
    team_id: Optional[str] = None
    name: str
    prompt_modifier: Optional[str] = None
    style: Optional[str] = None
    color: Optional[str] = None
    stroke_weight: Optional[float] = None
    animation: Optional[str] = None
    trigger: Optional[str] = None
    duration: Optional[float] = None
    is_shared: bool = False
    created_at: datetime
    updated_at: datetime


class TemplateListResponse(CamelModel):
    templates: List[TemplateResponse]
    team_templates: List[TemplateResponse] = Field(default_factory=list)


class TemplateEnvelope(CamelModel):
    template: TemplateResponse


class TemplateUpdateRequest(CamelRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    prompt_modifier: Optional[str] = Field(None, max_length=500)
    style: Optional[IconStyle] = None
    color: Optional[str] = Field(None, max_length=50)
    stroke_weight: Optional[float] = Field(None, ge=0.5, le=5)
    animation: Optional[str] = Field(None, max_length=50)
    trigger: Optional[str] = Field(None, max_length=50)
    duration: Optional[float] = Field(None, ge=0.1, le=3)
    is_shared: Optional[bool] = None


class TemplateCreateRequest(TemplateUpdateRequest):
    name: str = Field(..., min_length=1, max_length=255)
    team_id: Optional[str] = None
