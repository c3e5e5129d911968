# lively_icons/routes/collections.py
"""
Personal collection routes, mounted under /api/user/collections.

Endpoints:
    GET    /                      → List collections with icon counts
    POST   /                      → Create a collection
    GET    /{collection_id}       → Collection with its icons
    PATCH  /{collection_id}       → Rename, describe or re-parent
    DELETE /{collection_id}       → Delete a collection
    POST   /{collection_id}/icons → Add icons
    DELETE /{collection_id}/icons → Remove icons
    POST   /{collection_id}/share → Share publicly (Team/Enterprise)
    DELETE /{collection_id}/share → Stop sharing
    GET    /{collection_id}/export, POST /{collection_id}/export → ZIP download
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..core.enums import ExportFormat
from ..database import get_db
from ..schemas.base import SuccessResponse
from ..schemas.collections import (
    AddIconsResponse,
    CollectionCreateRequest,
    CollectionDetailResponse,
    CollectionEnvelope,
    CollectionIconResponse,
    CollectionIconsRequest,
    CollectionListResponse,
    CollectionResponse,
    CollectionSummary,
    CollectionUpdateRequest,
    ExportRequest,
    ShareCreatedResponse,
    ShareRequest,
    ShareResponse,
    UnshareResponse,
)
from ..schemas.icons import IconResponse
from ..services.collection_service import CollectionExport, CollectionService, share_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["collections"])


def get_collection_service(db: Session = Depends(get_db)) -> CollectionService:
    return CollectionService(db)


def _zip_response(export: CollectionExport) -> Response:
    return Response(
        content=export.content,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{export.filename}"',
            "Cache-Control": "private, max-age=3600",
        },
    )


@router.get("", response_model=CollectionListResponse)
def list_collections(
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> CollectionListResponse:
    summaries = [
        CollectionSummary(
            **CollectionResponse.model_validate(collection).model_dump(),
            icon_count=count,
            share_url=share_url(shared.public_slug) if shared else None,
        )
        for collection, count, shared in collection_service.list_collections(user_id)
    ]
    return CollectionListResponse(collections=summaries)


@router.post("", response_model=CollectionEnvelope, status_code=status.HTTP_201_CREATED)
def create_collection(
    payload: CollectionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> CollectionEnvelope:
    collection = collection_service.create_collection(
        user_id, payload.name, payload.description, payload.parent_collection_id
    )
    return CollectionEnvelope(collection=CollectionResponse.model_validate(collection))


@router.get("/{collection_id}", response_model=CollectionDetailResponse)
def get_collection(
    collection_id: str,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> CollectionDetailResponse:
    collection, icons = collection_service.get_collection(user_id, collection_id)
    return CollectionDetailResponse(
        collection=CollectionResponse.model_validate(collection),
        icons=[
            CollectionIconResponse(**IconResponse.model_validate(icon).model_dump(), added_at=added_at)
            for icon, added_at in icons
        ],
    )


@router.patch("/{collection_id}", response_model=CollectionEnvelope)
def update_collection(
    collection_id: str,
    payload: CollectionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> CollectionEnvelope:
    collection = collection_service.update_collection(
        user_id, collection_id, payload.model_dump(exclude_unset=True)
    )
    return CollectionEnvelope(collection=CollectionResponse.model_validate(collection))


@router.delete("/{collection_id}", response_model=SuccessResponse)
def delete_collection(
    collection_id: str,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> SuccessResponse:
    collection_service.delete_collection(user_id, collection_id)
    return SuccessResponse()


@router.post("/{collection_id}/icons", response_model=AddIconsResponse)
def add_icons(
    collection_id: str,
    payload: CollectionIconsRequest,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> AddIconsResponse:
    added = collection_service.add_icons(user_id, collection_id, payload.icon_ids)
    return AddIconsResponse(added_count=added)


@router.delete("/{collection_id}/icons", response_model=SuccessResponse)
def remove_icons(
    collection_id: str,
    payload: CollectionIconsRequest,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> SuccessResponse:
    collection_service.remove_icons(user_id, collection_id, payload.icon_ids)
    return SuccessResponse()


@router.post("/{collection_id}/share", response_model=ShareCreatedResponse, status_code=status.HTTP_201_CREATED)
def share_collection(
    collection_id: str,
    payload: Optional[ShareRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> ShareCreatedResponse:
    payload = payload or ShareRequest()
    shared = collection_service.share_collection(
        user_id, collection_id, password=payload.password, allow_embed=payload.allow_embed
    )
    return ShareCreatedResponse(
        share=ShareResponse.model_validate(shared), share_url=share_url(shared.public_slug)
    )


@router.delete("/{collection_id}/share", response_model=UnshareResponse)
def unshare_collection(
    collection_id: str,
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> UnshareResponse:
    collection_service.unshare_collection(user_id, collection_id)
    return UnshareResponse()


@router.get("/{collection_id}/export")
def export_collection(
    collection_id: str,
    formats: List[ExportFormat] = Query([ExportFormat.SVG]),
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> Response:
    """ZIP with every icon in each requested format (``?formats=svg&formats=react``) plus a README."""
    export = collection_service.export_zip(user_id, collection_id, [fmt.value for fmt in formats])
    return _zip_response(export)


@router.post("/{collection_id}/export")
def export_collection_with_body(
    collection_id: str,
    payload: Optional[ExportRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    collection_service: CollectionService = Depends(get_collection_service),
) -> Response:
    """Same as the GET variant with formats taken from the JSON body (default svg)."""
    formats = [ExportFormat(fmt).value for fmt in payload.formats] if payload else [ExportFormat.SVG.value]
    export = collection_service.export_zip(user_id, collection_id, formats)
    return _zip_response(export)
