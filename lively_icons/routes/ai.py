# lively_icons/routes/ai.py
"""
AI generation routes

Endpoints:
    POST /generate            → Generate an icon from a prompt
    POST /refine              → Refine an existing icon
    POST /upload-reference    → Generate from an uploaded reference image
    POST /batch               → Queue a multi-prompt batch
    GET  /batch/{batch_id}    → Batch progress and finished icons
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..core.constants import MIN_PROMPT_LENGTH
from ..core.enums import IconStyle
from ..core.exceptions import ValidationException
from ..database import get_db
from ..schemas.icons import (
    BatchIconSummary,
    BatchQueuedResponse,
    BatchRequest,
    BatchStatusResponse,
    GenerateIconRequest,
    GenerateIconResponse,
    ReferenceIconResponse,
    RefineIconRequest,
    RefineIconResponse,
)
from ..services.generation_service import GenerationResult, GenerationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])

STYLES = {style.value for style in IconStyle}


def get_generation_service(db: Session = Depends(get_db)) -> GenerationService:
    """Dependency to get the generation service."""
    return GenerationService(db)


def _generated(result: GenerationResult) -> dict:
    icon = result.icon
    return {
        "icon_id": icon.id,
        "svg_code": icon.svg_code,
        "component_code": icon.component_code,
        "suggested_animation": icon.animation,
        "suggested_trigger": icon.trigger,
        "tokens_remaining": result.tokens_remaining,
    }


@router.post("/generate", response_model=GenerateIconResponse)
def generate_icon(
    payload: GenerateIconRequest,
    user_id: str = Depends(get_current_user_id),
    generation_service: GenerationService = Depends(get_generation_service),
) -> GenerateIconResponse:
    """
    Generate an animated icon from a text prompt.

    Tokens are charged only when the model returned a valid SVG; rate limit
    failures answer 429 with ``Retry-After``.
    """
    result = generation_service.generate(
        user_id,
        payload.prompt,
        payload.style,
        animation=payload.animation,
        trigger=payload.trigger,
        duration=payload.duration,
        team_id=payload.team_id,
    )
    return GenerateIconResponse(**_generated(result))


@router.post("/refine", response_model=RefineIconResponse)
def refine_icon(
    payload: RefineIconRequest,
    user_id: str = Depends(get_current_user_id),
    generation_service: GenerationService = Depends(get_generation_service),
) -> RefineIconResponse:
    """Create a refined variant of an icon, linked to it through ``parentIconId``."""
    result = generation_service.refine(user_id, payload.icon_id, payload.instruction, team_id=payload.team_id)
    icon = result.icon
    return RefineIconResponse(
        icon_id=icon.id,
        parent_icon_id=icon.parent_icon_id or payload.icon_id,
        svg_code=icon.svg_code,
        component_code=icon.component_code,
        tokens_remaining=result.tokens_remaining,
    )


@router.post("/upload-reference", response_model=ReferenceIconResponse)
def upload_reference(
    image: Optional[UploadFile] = File(None),
    prompt: Optional[str] = Form(None),
    style: Optional[str] = Form(None),
    animation: Optional[str] = Form(None),
    trigger: Optional[str] = Form(None),
    duration: Optional[float] = Form(None),
    team_id: Optional[str] = Form(None, alias="teamId"),
    user_id: str = Depends(get_current_user_id),
    generation_service: GenerationService = Depends(get_generation_service),
) -> ReferenceIconResponse:
    """Multipart upload: ``image`` plus the usual generation fields."""
    if image is None:
        raise ValidationException("No image file provided", code="missing_image")
    if not prompt or len(prompt) < MIN_PROMPT_LENGTH:
        raise ValidationException("Prompt is required (min 3 characters)", code="invalid_prompt")
    if not style:
        raise ValidationException("Style is required", code="missing_style")
    if style not in STYLES:
        raise ValidationException("Invalid style", code="invalid_style", details={"allowed": sorted(STYLES)})

    result = generation_service.generate_from_reference(
        user_id,
        image=image.file.read(),
        content_type=image.content_type or "",
        prompt=prompt,
        style=style,
        animation=animation,
        trigger=trigger,
        duration=duration,
        team_id=team_id,
    )
    return ReferenceIconResponse(**_generated(result), reference_image_url=result.icon.reference_image_url)


@router.post("/batch", response_model=BatchQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def create_batch(
    payload: BatchRequest,
    user_id: str = Depends(get_current_user_id),
    generation_service: GenerationService = Depends(get_generation_service),
) -> BatchQueuedResponse:
    """Charge the whole batch and queue it; poll ``GET /batch/{batch_id}`` for progress."""
    started = generation_service.create_batch(
        user_id,
        payload.prompts,
        payload.style,
        animation=payload.animation,
        trigger=payload.trigger,
        duration=payload.duration,
        team_id=payload.team_id,
    )
    return BatchQueuedResponse(
        batch_id=started.batch.id,
        status=started.batch.status,
        total_prompts=started.batch.total_prompts,
        tokens_cost=started.tokens_cost,
        tokens_remaining=started.tokens_remaining,
    )


@router.get("/batch/{batch_id}", response_model=BatchStatusResponse)
def get_batch(
    batch_id: str,
    user_id: str = Depends(get_current_user_id),
    generation_service: GenerationService = Depends(get_generation_service),
) -> BatchStatusResponse:
    batch, icons = generation_service.get_batch(user_id, batch_id)
    return BatchStatusResponse(
        batch_id=batch.id,
        status=batch.status,
        total_prompts=batch.total_prompts,
        completed_count=batch.completed_count,
        failed_count=batch.failed_count,
        icons=[BatchIconSummary.model_validate(icon) for icon in icons],
        created_at=batch.created_at,
        completed_at=batch.completed_at,
    )
