# lively_icons/routes/invitations.py
"""Invitation landing and acceptance, mounted under /api/invitations."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user_email, get_current_user_id
from ..database import get_db
from ..schemas.teams import AcceptInvitationRequest, AcceptInvitationResponse, InvitationPreviewResponse
from ..services.team_service import TeamService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invitations"])


def get_team_service(db: Session = Depends(get_db)) -> TeamService:
    return TeamService(db)


@router.post("/accept", response_model=AcceptInvitationResponse, response_model_exclude_none=True)
def accept_invitation(
    payload: AcceptInvitationRequest,
    user_id: str = Depends(get_current_user_id),
    user_email: Optional[str] = Depends(get_current_user_email),
    team_service: TeamService = Depends(get_team_service),
) -> AcceptInvitationResponse:
    """Join the team; the signed-in account's email must match the invited address."""
    result = team_service.accept_invitation(user_id, payload.token, user_email=user_email)
    if result.already_member:
        return AcceptInvitationResponse(already_member=True)
    return AcceptInvitationResponse(team_id=result.team_id, role=result.role)


@router.get("/{token}", response_model=InvitationPreviewResponse)
def get_invitation(
    token: str,
    team_service: TeamService = Depends(get_team_service),
) -> InvitationPreviewResponse:
    """Public invitation details; 410 once the invitation is used, revoked or expired."""
    preview = team_service.get_invitation_preview(token)
    return InvitationPreviewResponse(
        team_name=preview.team_name,
        team_slug=preview.team_slug,
        team_avatar_url=preview.team_avatar_url,
        inviter_name=preview.inviter_name,
        role=preview.invitation.role,
        email=preview.invitation.email,
        expires_at=preview.invitation.expires_at,
    )
