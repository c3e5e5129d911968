# lively_icons/routes/templates.py
"""Style template routes, mounted under /api/user/templates."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..database import get_db
from ..schemas.base import SuccessResponse
from ..schemas.templates import (
    TemplateCreateRequest,
    TemplateEnvelope,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdateRequest,
)
from ..services.template_library_service import StyleTemplateService

router = APIRouter(tags=["templates"])


def get_template_service(db: Session = Depends(get_db)) -> StyleTemplateService:
    return StyleTemplateService(db)


@router.get("", response_model=TemplateListResponse)
def list_templates(
    user_id: str = Depends(get_current_user_id),
    template_service: StyleTemplateService = Depends(get_template_service),
) -> TemplateListResponse:
    """Personal templates plus the shared templates of every team the user belongs to."""
    personal, team_templates = template_service.list_templates(user_id)
    return TemplateListResponse(
        templates=[TemplateResponse.model_validate(t) for t in personal],
        team_templates=[TemplateResponse.model_validate(t) for t in team_templates],
    )


@router.post("", response_model=TemplateEnvelope, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreateRequest,
    user_id: str = Depends(get_current_user_id),
    template_service: StyleTemplateService = Depends(get_template_service),
) -> TemplateEnvelope:
    template = template_service.create_template(
        user_id, payload.model_dump(mode="json", exclude={"team_id"}), team_id=payload.team_id
    )
    return TemplateEnvelope(template=TemplateResponse.model_validate(template))


@router.patch("/{template_id}", response_model=TemplateEnvelope)
def update_template(
    template_id: str,
    payload: TemplateUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    template_service: StyleTemplateService = Depends(get_template_service),
) -> TemplateEnvelope:
    template = template_service.update_template(user_id, template_id, payload.model_dump(mode="json", exclude_unset=True))
    return TemplateEnvelope(template=TemplateResponse.model_validate(template))


@router.delete("/{template_id}", response_model=SuccessResponse)
def delete_template(
    template_id: str,
    user_id: str = Depends(get_current_user_id),
    template_service: StyleTemplateService = Depends(get_template_service),
) -> SuccessResponse:
    template_service.delete_template(user_id, template_id)
    return SuccessResponse()
