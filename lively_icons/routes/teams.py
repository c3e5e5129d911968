# lively_icons/routes/teams.py
"""
Team routes, mounted under /api/teams.

All business logic is delegated to TeamService; role checks (viewer <
editor < admin) happen there.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..core.constants import DEFAULT_QUERY_LIMIT
from ..database import get_db
from ..schemas.collections import CollectionEnvelope, CollectionResponse
from ..schemas.icons import TeamIconResponse
from ..schemas.teams import (
    DeletedResponse,
    FigmaExportResponse,
    InvitationCreateRequest,
    InvitationEnvelope,
    InvitationListResponse,
    InvitationResponse,
    MemberEnvelope,
    MemberListResponse,
    MemberProfileResponse,
    MemberRoleUpdateRequest,
    Pagination,
    RemovedResponse,
    RevokedResponse,
    SlackConfigRequest,
    SlackConfigResponse,
    SlackTestResponse,
    TeamAnalyticsResponse,
    TeamCollectionCreateRequest,
    TeamCollectionListResponse,
    TeamCreateRequest,
    TeamDetailResponse,
    TeamEnvelope,
    TeamLibraryResponse,
    TeamListResponse,
    TeamMemberResponse,
    TeamResponse,
    TeamStats,
    TeamUpdateRequest,
    TeamWithRole,
)
from ..schemas.templates import TemplateListResponse, TemplateResponse
from ..services.team_service import TeamService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["teams"])


def get_team_service(db: Session = Depends(get_db)) -> TeamService:
    return TeamService(db)


# Teams


@router.get("", response_model=TeamListResponse)
def list_teams(
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamListResponse:
    return TeamListResponse(
        teams=[
            TeamWithRole(**TeamResponse.model_validate(team).model_dump(), role=role)
            for team, role in team_service.list_teams(user_id)
        ]
    )


@router.post("", response_model=TeamEnvelope, status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreateRequest,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamEnvelope:
    """Create a team owned by the caller. Requires an active Team or Enterprise plan."""
    team = team_service.create_team(user_id, payload.name, payload.slug)
    return TeamEnvelope(team=TeamResponse.model_validate(team))


@router.get("/{team_id}", response_model=TeamDetailResponse)
def get_team(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamDetailResponse:
    team, stats = team_service.get_team(user_id, team_id)
    return TeamDetailResponse(team=TeamResponse.model_validate(team), stats=TeamStats.model_validate(stats))


@router.api_route("/{team_id}", methods=["PATCH", "PUT"], response_model=TeamEnvelope)
def update_team(
    team_id: str,
    payload: TeamUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamEnvelope:
    team = team_service.update_team(user_id, team_id, payload.model_dump(exclude_unset=True))
    return TeamEnvelope(team=TeamResponse.model_validate(team))


@router.delete("/{team_id}", response_model=DeletedResponse)
def delete_team(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> DeletedResponse:
    team_service.delete_team(user_id, team_id)
    return DeletedResponse()


# Members


@router.get("/{team_id}/members", response_model=MemberListResponse)
def list_members(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> MemberListResponse:
    """Members enriched with name, email and avatar from the auth provider."""
    members = [
        MemberProfileResponse(
            **TeamMemberResponse.model_validate(profile.member).model_dump(),
            email=profile.email,
            name=profile.name,
            image_url=profile.image_url,
        )
        for profile in team_service.list_members(user_id, team_id)
    ]
    return MemberListResponse(members=members)


@router.patch("/{team_id}/members/{member_id}", response_model=MemberEnvelope)
def update_member_role(
    team_id: str,
    member_id: str,
    payload: MemberRoleUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> MemberEnvelope:
    member = team_service.update_member_role(user_id, team_id, member_id, payload.role)
    return MemberEnvelope(member=TeamMemberResponse.model_validate(member))


@router.delete("/{team_id}/members/{member_id}", response_model=RemovedResponse)
def remove_member(
    team_id: str,
    member_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> RemovedResponse:
    """Admins remove others; any member may remove themselves. The owner is never removable."""
    team_service.remove_member(user_id, team_id, member_id)
    return RemovedResponse()


# Invitations


@router.get("/{team_id}/invitations", response_model=InvitationListResponse)
def list_invitations(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> InvitationListResponse:
    invitations = team_service.list_invitations(user_id, team_id)
    return InvitationListResponse(invitations=[InvitationResponse.model_validate(i) for i in invitations])


@router.post(
    "/{team_id}/invitations", response_model=InvitationEnvelope, status_code=status.HTTP_201_CREATED
)
def create_invitation(
    team_id: str,
    payload: InvitationCreateRequest,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> InvitationEnvelope:
    """Invite by email; the invitation email is sent by a background task."""
    invitation = team_service.create_invitation(user_id, team_id, payload.email, payload.role)
    return InvitationEnvelope(invitation=InvitationResponse.model_validate(invitation))


@router.delete("/{team_id}/invitations/{invitation_id}", response_model=RevokedResponse)
def revoke_invitation(
    team_id: str,
    invitation_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> RevokedResponse:
    team_service.revoke_invitation(user_id, team_id, invitation_id)
    return RevokedResponse()


# Dashboard


@router.get("/{team_id}/analytics", response_model=TeamAnalyticsResponse)
def team_analytics(
    team_id: str,
    period: str = Query("30d"),
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamAnalyticsResponse:
    """Token balance and usage breakdowns for ``7d``, ``30d`` or ``90d`` (admins only)."""
    return TeamAnalyticsResponse.model_validate(team_service.get_analytics(user_id, team_id, period))


@router.get("/{team_id}/library", response_model=TeamLibraryResponse)
def team_library(
    team_id: str,
    search: Optional[str] = Query(None),
    style: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None, alias="createdBy"),
    page: int = Query(1),
    limit: int = Query(DEFAULT_QUERY_LIMIT),
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamLibraryResponse:
    icons, pagination = team_service.list_library(
        user_id, team_id, search=search, style=style, created_by=created_by, page=page, limit=limit
    )
    return TeamLibraryResponse(
        icons=[TeamIconResponse.model_validate(icon) for icon in icons],
        pagination=Pagination.model_validate(pagination),
    )


@router.get("/{team_id}/figma", response_model=FigmaExportResponse)
def figma_export(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> FigmaExportResponse:
    """Icon payload consumed by the Figma plugin."""
    return FigmaExportResponse.model_validate(team_service.figma_export(user_id, team_id))


@router.get("/{team_id}/collections", response_model=TeamCollectionListResponse)
def list_team_collections(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TeamCollectionListResponse:
    collections = team_service.list_collections(user_id, team_id)
    return TeamCollectionListResponse(collections=[CollectionResponse.model_validate(c) for c in collections])


@router.post("/{team_id}/collections", response_model=CollectionEnvelope, status_code=status.HTTP_201_CREATED)
def create_team_collection(
    team_id: str,
    payload: TeamCollectionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> CollectionEnvelope:
    collection = team_service.create_collection(user_id, team_id, payload.name, payload.description)
    return CollectionEnvelope(collection=CollectionResponse.model_validate(collection))


@router.get("/{team_id}/templates", response_model=TemplateListResponse)
def list_team_templates(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> TemplateListResponse:
    templates = team_service.list_shared_templates(user_id, team_id)
    return TemplateListResponse(templates=[TemplateResponse.model_validate(t) for t in templates])


# Slack


@router.get("/{team_id}/integrations/slack", response_model=SlackConfigResponse)
def get_slack_config(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> SlackConfigResponse:
    return SlackConfigResponse.model_validate(team_service.get_slack_config(user_id, team_id))


@router.put("/{team_id}/integrations/slack", response_model=SlackConfigResponse)
def configure_slack(
    team_id: str,
    payload: SlackConfigRequest,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> SlackConfigResponse:
    """Store an incoming-webhook URL (must start with https://hooks.slack.com/)."""
    team = team_service.configure_slack(user_id, team_id, payload.webhook_url, payload.channel_name)
    return SlackConfigResponse.model_validate(team)


@router.delete("/{team_id}/integrations/slack", response_model=RemovedResponse)
def remove_slack(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> RemovedResponse:
    team_service.remove_slack(user_id, team_id)
    return RemovedResponse()


@router.post("/{team_id}/integrations/slack/test", response_model=SlackTestResponse)
def test_slack(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    team_service: TeamService = Depends(get_team_service),
) -> SlackTestResponse:
    team_service.send_slack_test(user_id, team_id)
    return SlackTestResponse()
