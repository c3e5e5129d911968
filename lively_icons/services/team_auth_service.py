# lively_icons/services/team_auth_service.py
"""
Team authorization for Lively Icons

Role checks for team-scoped routes and resolution of the "team context"
a generation runs under. Team generation spends the team owner's tokens,
so the context carries the subscription owner alongside the caller's role.
"""

from dataclasses import dataclass
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import TeamRole
from ..core.exceptions import ForbiddenException, NotFoundException
from ..models.team import Team, TeamMember
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

ROLE_HIERARCHY: Dict[str, int] = {
    TeamRole.VIEWER.value: 0,
    TeamRole.EDITOR.value: 1,
    TeamRole.ADMIN.value: 2,
}

NOT_A_MEMBER_MESSAGE = "You are not a member of this team."


def has_role(role: str, required: str) -> bool:
    """True when ``role`` is at least as privileged as ``required``; unknown roles never pass."""
    if role not in ROLE_HIERARCHY:
        return False
    return ROLE_HIERARCHY[role] >= ROLE_HIERARCHY[required]


@dataclass(frozen=True)
class TeamContext:
    team_id: Optional[str]
    role: Optional[str]
    subscription_owner_id: str

    @property
    def is_team(self) -> bool:
        return self.team_id is not None


class TeamAuthService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.team_repository = RepositoryFactory.create_team_repository(db)
        self.member_repository = RepositoryFactory.create_team_member_repository(db)

    def require_team_member(
        self, team_id: str, clerk_user_id: str, min_role: str = TeamRole.VIEWER.value
    ) -> TeamMember:
        """
        Return the caller's membership or raise 403.

        Raises:
            ForbiddenException: not a member, or role below ``min_role``
        """
        member = self.member_repository.get_membership(team_id, clerk_user_id)
        if member is None:
            raise ForbiddenException(NOT_A_MEMBER_MESSAGE, code="not_team_member")
        if not has_role(member.role, min_role):
            raise ForbiddenException(
                f"This action requires {min_role} role or higher.", code="insufficient_role"
            )
        return member

    def require_team(self, team_id: str) -> Team:
        team = self.team_repository.get_by_id(team_id)
        if team is None:
            raise NotFoundException("Team not found.", code="team_not_found")
        return team

    def require_team_access(
        self, team_id: str, clerk_user_id: str, min_role: str = TeamRole.VIEWER.value
    ) -> Tuple[Team, TeamMember]:
        member = self.require_team_member(team_id, clerk_user_id, min_role)
        return self.require_team(team_id), member

    def resolve_team_context(self, clerk_user_id: str, team_id: Optional[str] = None) -> TeamContext:
        if not team_id:
            return TeamContext(team_id=None, role=None, subscription_owner_id=clerk_user_id)

        member = self.member_repository.get_membership(team_id, clerk_user_id)
        if member is None:
            raise ForbiddenException(NOT_A_MEMBER_MESSAGE, code="not_team_member")
        team = self.require_team(team_id)
        return TeamContext(
            team_id=team_id, role=member.role, subscription_owner_id=team.owner_clerk_user_id
        )

    def get_teams_for_user(self, clerk_user_id: str) -> List[Tuple[Team, str]]:
        return self.team_repository.list_for_user(clerk_user_id)

    def is_team_owner(self, team_id: str, clerk_user_id: str) -> bool:
        team = self.team_repository.get_by_id(team_id)
        return team is not None and team.owner_clerk_user_id == clerk_user_id
