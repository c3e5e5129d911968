"""
Team Repositories for Lively Icons

Handles teams, memberships and invitations. Membership checks used by the
team authorization service go through ``TeamMemberRepository``.
"""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.team import Team, TeamInvitation, TeamMember
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TeamRepository(BaseRepository[Team]):
    def __init__(self, db: Session):
        super().__init__(db, Team)

    def get_by_slug(self, slug: str) -> Optional[Team]:
        return self.find_one_by(slug=slug)

    def list_for_user(self, clerk_user_id: str) -> List[Tuple[Team, str]]:
        """Teams the user belongs to, paired with the user's role."""
        try:
            rows = (
                self.db.query(Team, TeamMember.role)
                .join(TeamMember, TeamMember.team_id == Team.id)
                .filter(TeamMember.clerk_user_id == clerk_user_id)
                .order_by(Team.created_at)
                .all()
            )
            return [(team, role) for team, role in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing teams for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list teams: {str(e)}")

    def list_admin_teams(self, clerk_user_id: str) -> List[Team]:
        try:
            return (
                self.db.query(Team)
                .join(TeamMember, TeamMember.team_id == Team.id)
                .filter(TeamMember.clerk_user_id == clerk_user_id, TeamMember.role == "admin")
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing admin teams for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list teams: {str(e)}")


class TeamMemberRepository(BaseRepository[TeamMember]):
    def __init__(self, db: Session):
        super().__init__(db, TeamMember)

    def get_membership(self, team_id: str, clerk_user_id: str) -> Optional[TeamMember]:
        return self.find_one_by(team_id=team_id, clerk_user_id=clerk_user_id)

    def get_in_team(self, team_id: str, member_id: str) -> Optional[TeamMember]:
        return self.find_one_by(id=member_id, team_id=team_id)

    def list_for_team(self, team_id: str) -> List[TeamMember]:
        try:
            return (
                self.db.query(TeamMember)
                .filter(TeamMember.team_id == team_id)
                .order_by(TeamMember.joined_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing members for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to list members: {str(e)}")


class TeamInvitationRepository(BaseRepository[TeamInvitation]):
    def __init__(self, db: Session):
        super().__init__(db, TeamInvitation)

    def get_by_token(self, token: str) -> Optional[TeamInvitation]:
        return self.find_one_by(token=token)

    def get_in_team(self, team_id: str, invitation_id: str) -> Optional[TeamInvitation]:
        return self.find_one_by(id=invitation_id, team_id=team_id)

    def list_pending_for_team(self, team_id: str) -> List[TeamInvitation]:
        try:
            return (
                self.db.query(TeamInvitation)
                .filter(TeamInvitation.team_id == team_id, TeamInvitation.status == "pending")
                .order_by(TeamInvitation.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing invitations for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to list invitations: {str(e)}")

    def find_pending(self, team_id: str, email: str) -> Optional[TeamInvitation]:
        try:
            return (
                self.db.query(TeamInvitation)
                .filter(
                    TeamInvitation.team_id == team_id,
                    func.lower(TeamInvitation.email) == email.lower(),
                    TeamInvitation.status == "pending",
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking pending invitation: {str(e)}")
            raise RepositoryException(f"Failed to find invitation: {str(e)}")

    def list_pending_for_email(self, email: str, now: datetime) -> List[TeamInvitation]:
        """Unexpired pending invitations addressed to ``email`` across all teams."""
        try:
            return (
                self.db.query(TeamInvitation)
                .filter(
                    func.lower(TeamInvitation.email) == email.lower(),
                    TeamInvitation.status == "pending",
                    TeamInvitation.expires_at > now,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing invitations for email: {str(e)}")
            raise RepositoryException(f"Failed to list invitations: {str(e)}")

    def expire_stale(self, now: datetime) -> int:
        """Flip pending invitations past their expiry to ``expired``; returns the count."""
        try:
            updated = (
                self.db.query(TeamInvitation)
                .filter(TeamInvitation.status == "pending", TeamInvitation.expires_at < now)
                .update({TeamInvitation.status: "expired"}, synchronize_session=False)
            )
            self.db.flush()
            return int(updated or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error expiring invitations: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to expire invitations: {str(e)}")
