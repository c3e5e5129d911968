"""
Schemas for personal collections, sharing and the public shared view.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..core.enums import ExportFormat
from .base import CamelModel, CamelRequestModel
from .icons import IconResponse


class CollectionResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    parent_collection_id: Optional[str] = None
    team_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CollectionSummary(CollectionResponse):
    icon_count: int = 0
    share_url: Optional[str] = None


class CollectionListResponse(CamelModel):
    collections: List[CollectionSummary]


class CollectionEnvelope(CamelModel):
    collection: CollectionResponse


class CollectionIconResponse(IconResponse):
    added_at: Optional[datetime] = None


class CollectionDetailResponse(CamelModel):
    collection: CollectionResponse
    icons: List[CollectionIconResponse]


class CollectionCreateRequest(CamelRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    parent_collection_id: Optional[str] = None


class CollectionUpdateRequest(CamelRequestModel):
    """Only fields present in the body are applied; ``parentCollectionId: null`` detaches."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    parent_collection_id: Optional[str] = None


class CollectionIconsRequest(CamelRequestModel):
    icon_ids: List[str] = Field(..., min_length=1, max_length=100)


class AddIconsResponse(CamelModel):
    success: bool = True
    added_count: int


class ExportRequest(CamelRequestModel):
    formats: List[ExportFormat] = Field(default_factory=lambda: [ExportFormat.SVG.value], min_length=1)


# Sharing


class ShareRequest(CamelRequestModel):
    password: Optional[str] = Field(None, max_length=255)
    allow_embed: Optional[bool] = None


class ShareResponse(CamelModel):
    id: str
    collection_id: str
    public_slug: str
    is_public: bool
    allow_embed: bool
    view_count: int = 0
    created_at: datetime


class ShareCreatedResponse(CamelModel):
    share: ShareResponse
    share_url: str


class UnshareResponse(CamelModel):
    unshared: bool = True


class SharedCollectionInfo(CamelModel):
    name: str
    description: Optional[str] = None
    icon_count: int


class SharedIconResponse(CamelModel):
    id: str
    name: str
    style: str
    animation: str
    trigger: str
    svg_code: str
    preview_url: str = ""
    duration: Optional[float] = None


class SharedCollectionResponse(CamelModel):
    collection: SharedCollectionInfo
    icons: List[SharedIconResponse]
    allow_embed: bool
    view_count: int
