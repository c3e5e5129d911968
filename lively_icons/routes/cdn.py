# lively_icons/routes/cdn.py
"""
CDN routes.

``public_router`` serves the per-user JavaScript bundle without
authentication (mounted at /api/cdn); ``router`` manages what is published
(mounted at /api/user/cdn).
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..database import get_db
from ..schemas.base import SuccessResponse
from ..schemas.cdn import (
    CdnIconListResponse,
    CdnIconResponse,
    PublishRequest,
    PublishResponse,
    UnpublishRequest,
)
from ..services.cdn_service import (
    BUNDLE_CACHE_CONTROL,
    EMPTY_BUNDLE,
    EMPTY_BUNDLE_CACHE_CONTROL,
    CdnService,
)

logger = logging.getLogger(__name__)

JAVASCRIPT_MEDIA_TYPE = "application/javascript; charset=utf-8"

router = APIRouter(tags=["cdn"])
public_router = APIRouter(tags=["cdn"])


def get_cdn_service(db: Session = Depends(get_db)) -> CdnService:
    return CdnService(db)


@public_router.get("/{user_id}/icons.js")
def icons_bundle(user_id: str, cdn_service: CdnService = Depends(get_cdn_service)) -> Response:
    """Self-registering bundle of the user's published icons."""
    bundle = cdn_service.build_bundle(user_id)
    if bundle is None:
        return Response(
            EMPTY_BUNDLE,
            media_type=JAVASCRIPT_MEDIA_TYPE,
            headers={"Cache-Control": EMPTY_BUNDLE_CACHE_CONTROL},
        )
    return Response(bundle, media_type=JAVASCRIPT_MEDIA_TYPE, headers={"Cache-Control": BUNDLE_CACHE_CONTROL})


@router.get("", response_model=CdnIconListResponse)
def list_published(
    user_id: str = Depends(get_current_user_id),
    cdn_service: CdnService = Depends(get_cdn_service),
) -> CdnIconListResponse:
    icons = cdn_service.list_published(user_id)
    return CdnIconListResponse(icons=[CdnIconResponse.model_validate(icon) for icon in icons])


@router.post("", response_model=PublishResponse)
def publish_icon(
    payload: PublishRequest,
    user_id: str = Depends(get_current_user_id),
    cdn_service: CdnService = Depends(get_cdn_service),
) -> PublishResponse:
    icon = cdn_service.publish(user_id, payload.icon_id, payload.slug)
    return PublishResponse(slug=icon.cdn_slug or payload.slug)


@router.delete("", response_model=SuccessResponse)
def unpublish_icon(
    payload: UnpublishRequest,
    user_id: str = Depends(get_current_user_id),
    cdn_service: CdnService = Depends(get_cdn_service),
) -> SuccessResponse:
    cdn_service.unpublish(user_id, payload.icon_id)
    return SuccessResponse()
