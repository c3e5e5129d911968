"""CDN publishing schemas."""

from typing import List, Optional

from pydantic import Field

from .base import CamelModel, CamelRequestModel


class CdnIconResponse(CamelModel):
    id: str
    name: str
    cdn_slug: Optional[str] = None
    svg_code: str
    animation: str
    trigger: str
    duration: Optional[float] = None


class CdnIconListResponse(CamelModel):
    icons: List[CdnIconResponse]


class PublishRequest(CamelRequestModel):
    icon_id: str
    slug: str = Field(..., min_length=1, max_length=100)


class PublishResponse(CamelModel):
    success: bool = True
    slug: str


class UnpublishRequest(CamelRequestModel):
    icon_id: str
