# lively_icons/routes/library.py
"""
Personal icon library routes, mounted under /api/user/library.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..core.constants import DEFAULT_QUERY_LIMIT
from ..database import get_db
from ..schemas.base import SuccessResponse
from ..schemas.icons import (
    AnimatedExportRequest,
    EditedIcon,
    IconEnvelope,
    IconListResponse,
    IconResponse,
    IconUpdateRequest,
    SvgEditRequest,
    SvgEditResponse,
)
from ..services.library_service import LibraryService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["library"])


def get_library_service(db: Session = Depends(get_db)) -> LibraryService:
    return LibraryService(db)


@router.get("", response_model=IconListResponse)
def list_icons(
    search: Optional[str] = Query(None),
    style: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_QUERY_LIMIT),
    offset: int = Query(0),
    user_id: str = Depends(get_current_user_id),
    library_service: LibraryService = Depends(get_library_service),
) -> IconListResponse:
    """Newest first; soft-deleted icons are never listed. ``limit`` is capped at 100."""
    icons = library_service.list_icons(user_id, search=search, style=style, limit=limit, offset=offset)
    return IconListResponse(icons=[IconResponse.model_validate(icon) for icon in icons], count=len(icons))


@router.get("/{icon_id}", response_model=IconEnvelope)
def get_icon(
    icon_id: str,
    user_id: str = Depends(get_current_user_id),
    library_service: LibraryService = Depends(get_library_service),
) -> IconEnvelope:
    return IconEnvelope(icon=IconResponse.model_validate(library_service.get_icon(user_id, icon_id)))


@router.patch("/{icon_id}", response_model=IconEnvelope)
def update_icon(
    icon_id: str,
    payload: IconUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    library_service: LibraryService = Depends(get_library_service),
) -> IconEnvelope:
    icon = library_service.update_icon(user_id, icon_id, payload.model_dump(exclude_unset=True))
    return IconEnvelope(icon=IconResponse.model_validate(icon))


@router.delete("/{icon_id}", response_model=SuccessResponse)
def delete_icon(
    icon_id: str,
    user_id: str = Depends(get_current_user_id),
    library_service: LibraryService = Depends(get_library_service),
) -> SuccessResponse:
    library_service.delete_icon(user_id, icon_id)
    return SuccessResponse()


@router.post("/{icon_id}/edit", response_model=SvgEditResponse)
def edit_svg(
    icon_id: str,
    payload: SvgEditRequest,
    user_id: str = Depends(get_current_user_id),
    library_service: LibraryService = Depends(get_library_service),
) -> SvgEditResponse:
    """Replace the icon SVG after revalidation; the React component is regenerated."""
    result = library_service.edit_svg(user_id, icon_id, payload.svg_code)
    return SvgEditResponse(icon=EditedIcon.model_validate(result.icon), warnings=result.warnings)


@router.post("/{icon_id}/export-animated")
def export_animated(
    icon_id: str,
    payload: AnimatedExportRequest,
    user_id: str = Depends(get_current_user_id),
    library_service: LibraryService = Depends(get_library_service),
) -> Response:
    """Download a self-animating SVG (SMIL). GIF answers 501."""
    export = library_service.export_animated(user_id, icon_id, payload.format, payload.size)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
