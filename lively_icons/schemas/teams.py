"""
Schemas for teams, members, invitations and the team dashboard.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.constants import TEAM_SLUG_PATTERN
from ..core.enums import TeamRole
from .base import CamelModel, CamelRequestModel
from .collections import CollectionResponse
from .icons import TeamIconResponse

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class TeamResponse(CamelModel):
    id: str
    name: str
    slug: str
    owner_clerk_user_id: str
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TeamWithRole(TeamResponse):
    role: str


class TeamListResponse(CamelModel):
    teams: List[TeamWithRole]


class TeamEnvelope(CamelModel):
    team: TeamResponse


class TeamStats(CamelModel):
    member_count: int
    icon_count: int


class TeamDetailResponse(CamelModel):
    team: TeamResponse
    stats: TeamStats


class TeamCreateRequest(CamelRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=3, max_length=50, pattern=TEAM_SLUG_PATTERN)


class TeamUpdateRequest(CamelRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=3, max_length=50, pattern=TEAM_SLUG_PATTERN)
    avatar_url: Optional[str] = None


class DeletedResponse(CamelModel):
    deleted: bool = True


# Members


class TeamMemberResponse(CamelModel):
    id: str
    team_id: str
    clerk_user_id: str
    role: str
    joined_at: datetime


class MemberProfileResponse(TeamMemberResponse):
    email: Optional[str] = None
    name: Optional[str] = None
    image_url: Optional[str] = None


class MemberListResponse(CamelModel):
    members: List[MemberProfileResponse]


class MemberEnvelope(CamelModel):
    member: TeamMemberResponse


class MemberRoleUpdateRequest(CamelRequestModel):
    role: TeamRole


class RemovedResponse(CamelModel):
    removed: bool = True


# Invitations


class InvitationResponse(CamelModel):
    id: str
    team_id: str
    email: str
    role: str
    status: str
    invited_by_clerk_user_id: str
    expires_at: datetime
    created_at: datetime
    accepted_at: Optional[datetime] = None


class InvitationListResponse(CamelModel):
    invitations: List[InvitationResponse]


class InvitationEnvelope(CamelModel):
    invitation: InvitationResponse


class InvitationCreateRequest(CamelRequestModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    role: TeamRole


class RevokedResponse(CamelModel):
    revoked: bool = True


class InvitationPreviewResponse(CamelModel):
    team_name: str
    team_slug: Optional[str] = None
    team_avatar_url: Optional[str] = None
    inviter_name: str
    role: str
    email: str
    expires_at: datetime


class AcceptInvitationRequest(CamelRequestModel):
    token: str = Field(..., min_length=1)


class AcceptInvitationResponse(CamelModel):
    accepted: bool = True
    team_id: Optional[str] = None
    role: Optional[str] = None
    already_member: Optional[bool] = None


# Dashboard


class TeamBalance(CamelModel):
    monthly: int
    top_up: int
    total: int


class DailyUsage(CamelModel):
    date: str
    tokens_used: int
    count: int


class MemberUsage(CamelModel):
    clerk_user_id: str
    count: int


class StyleUsage(CamelModel):
    style: str
    count: int


class TeamAnalyticsResponse(CamelModel):
    period: str
    balance: Optional[TeamBalance] = None
    daily_usage: List[DailyUsage]
    by_member: List[MemberUsage]
    by_style: List[StyleUsage]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TeamLibraryResponse(CamelModel):
    icons: List[TeamIconResponse]
    pagination: Pagination


class FigmaExportResponse(CamelModel):
    version: int
    team_id: str
    icon_count: int
    icons: List[Dict[str, Any]]


class TeamCollectionListResponse(CamelModel):
    collections: List[CollectionResponse]


class TeamCollectionCreateRequest(CamelRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)


# Slack


class SlackConfigRequest(CamelRequestModel):
    webhook_url: str = Field(..., max_length=2000)
    channel_name: Optional[str] = Field(None, max_length=255)


class SlackConfigResponse(CamelModel):
    slack_webhook_url: Optional[str] = None
    slack_channel_name: Optional[str] = None


class SlackTestResponse(CamelModel):
    sent: bool = True
