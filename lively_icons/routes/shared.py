# lively_icons/routes/shared.py
"""Public shared-collection routes (no authentication), mounted under /api/shared."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.collections import SharedCollectionInfo, SharedCollectionResponse, SharedIconResponse
from ..services.collection_service import SharedCollectionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shared"])

EMBED_NOT_FOUND = "// Collection not found or embedding disabled"
EMBED_CACHE_CONTROL = "public, max-age=3600, s-maxage=86400"


def get_shared_collection_service(db: Session = Depends(get_db)) -> SharedCollectionService:
    return SharedCollectionService(db)


@router.get("/{slug}", response_model=SharedCollectionResponse)
def view_shared_collection(
    slug: str,
    share_password: Optional[str] = Header(None, alias="x-share-password"),
    shared_service: SharedCollectionService = Depends(get_shared_collection_service),
) -> SharedCollectionResponse:
    """Public view of a shared collection; password-protected shares read ``x-share-password``."""
    view = shared_service.view(slug, share_password)
    return SharedCollectionResponse(
        collection=SharedCollectionInfo(
            name=view.collection.name,
            description=view.collection.description,
            icon_count=len(view.icons),
        ),
        icons=[SharedIconResponse.model_validate(icon) for icon in view.icons],
        allow_embed=view.shared.allow_embed,
        view_count=view.shared.view_count,
    )


@router.get("/{slug}/embed.js")
def embed_script(
    slug: str,
    shared_service: SharedCollectionService = Depends(get_shared_collection_service),
) -> Response:
    script = shared_service.embed_script(slug)
    if script is None:
        return Response(EMBED_NOT_FOUND, status_code=404, media_type="application/javascript")
    return Response(
        script,
        media_type="application/javascript",
        headers={"Cache-Control": EMBED_CACHE_CONTROL, "Access-Control-Allow-Origin": "*"},
    )
