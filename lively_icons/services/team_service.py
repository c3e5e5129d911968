# lively_icons/services/team_service.py
"""
Team Service for Lively Icons

Team lifecycle (create, update, delete), membership management,
invitations, Slack integration settings and the read models behind the
team dashboard (analytics, library, Figma export).

Authorization is checked here rather than in routes: every public method
takes the caller's Clerk user id first.
"""

from dataclasses import dataclass
from datetime import timedelta
import logging
import re
import secrets
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    ANALYTICS_PERIODS,
    FIGMA_EXPORT_VERSION,
    INVITATION_EXPIRY_DAYS,
    INVITATION_TOKEN_BYTES,
    MAX_QUERY_LIMIT,
    SLACK_WEBHOOK_PREFIX,
    TEAM_SLUG_PATTERN,
    get_plan_config,
)
from ..core.enums import InvitationStatus, PlanType, SubscriptionStatus, TeamRole
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    GoneException,
    NotFoundException,
    ServiceException,
    UpstreamServiceException,
    ValidationException,
)
from ..core.time_utils import as_utc, utc_now
from ..integrations.clerk_client import ClerkApiError, ClerkClient, get_clerk_client
from ..models.collection import Collection
from ..models.icon import GeneratedIcon
from ..models.style_template import StyleTemplate
from ..models.team import Team, TeamInvitation, TeamMember
from ..repositories.factory import RepositoryFactory
from ..tasks.enqueue import enqueue_task
from .base import BaseService
from .email import EmailService
from .slack_service import SlackService, SlackWebhookError
from .team_auth_service import TeamAuthService
from .team_token_service import TEAM_PLANS, TeamTokenService

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(TEAM_SLUG_PATTERN)

INVITATION_EXPIRES_IN = f"{INVITATION_EXPIRY_DAYS} days"


def generate_invitation_token() -> str:
    return secrets.token_hex(INVITATION_TOKEN_BYTES)


def validate_team_slug(slug: str) -> None:
    if not _SLUG_RE.match(slug):
        raise ValidationException(
            "Slug must be 3-50 chars, lowercase alphanumeric and hyphens, cannot start/end with hyphen.",
            code="invalid_slug",
        )


def invitation_accept_url(token: str) -> str:
    return f"{settings.app_url}/invite/{token}"


@dataclass
class MemberProfile:
    member: TeamMember
    email: Optional[str]
    name: Optional[str]
    image_url: Optional[str]


@dataclass
class InvitationPreview:
    invitation: TeamInvitation
    team_name: str
    team_slug: Optional[str]
    team_avatar_url: Optional[str]
    inviter_name: str


@dataclass
class AcceptResult:
    team_id: str
    role: str
    already_member: bool = False


class TeamService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        clerk_client: Optional[ClerkClient] = None,
        slack_service: Optional[SlackService] = None,
    ):
        super().__init__(db)
        self.team_repository = RepositoryFactory.create_team_repository(db)
        self.member_repository = RepositoryFactory.create_team_member_repository(db)
        self.invitation_repository = RepositoryFactory.create_team_invitation_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.icon_repository = RepositoryFactory.create_icon_repository(db)
        self.event_repository = RepositoryFactory.create_generation_event_repository(db)
        self.collection_repository = RepositoryFactory.create_collection_repository(db)
        self.template_repository = RepositoryFactory.create_style_template_repository(db)
        self.team_auth = TeamAuthService(db)
        self.team_tokens = TeamTokenService(db)
        self._email_service = email_service
        self._clerk_client = clerk_client
        self.slack_service = slack_service or SlackService()

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = EmailService(self.db)
        return self._email_service

    @property
    def clerk_client(self) -> ClerkClient:
        if self._clerk_client is None:
            self._clerk_client = get_clerk_client()
        return self._clerk_client

    def _send_best_effort(self, description: str, send, *args: Any, **kwargs: Any) -> None:
        try:
            send(*args, **kwargs)
        except ServiceException as exc:
            self.logger.error(f"Failed to send {description} email: {exc.message}")

    # Teams

    def list_teams(self, clerk_user_id: str) -> List[Tuple[Team, str]]:
        return self.team_auth.get_teams_for_user(clerk_user_id)

    @BaseService.measure_operation("create_team")
    def create_team(self, clerk_user_id: str, name: str, slug: str) -> Team:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if (
            subscription is None
            or subscription.plan_type not in TEAM_PLANS
            or subscription.status != SubscriptionStatus.ACTIVE.value
        ):
            raise ForbiddenException(
                "A Team plan subscription is required to create a team.", code="plan_required"
            )
        validate_team_slug(slug)
        if self.team_repository.get_by_slug(slug) is not None:
            raise ConflictException(
                "This team URL is already taken. Please choose another.", code="slug_taken"
            )

        with self.transaction():
            team = self.team_repository.create(name=name, slug=slug, owner_clerk_user_id=clerk_user_id)
            self.member_repository.create(
                team_id=team.id, clerk_user_id=clerk_user_id, role=TeamRole.ADMIN.value
            )
        self.log_operation("team_created", team_id=team.id, owner=clerk_user_id)

        owner = self.clerk_client.get_user_email_info(clerk_user_id)
        if owner is not None:
            self._send_best_effort(
                "team created", self.email_service.send_team_created, owner.email, owner.name, team.name, team.slug
            )
        return team

    def get_team(self, clerk_user_id: str, team_id: str) -> Tuple[Team, Dict[str, int]]:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id)
        stats = {
            "memberCount": self.member_repository.count(team_id=team_id),
            "iconCount": self.icon_repository.count(team_id=team_id),
        }
        return team, stats

    @BaseService.measure_operation("update_team")
    def update_team(self, clerk_user_id: str, team_id: str, changes: Dict[str, Any]) -> Team:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id, TeamRole.ADMIN.value)
        updates: Dict[str, Any] = {}
        if changes.get("name") is not None:
            updates["name"] = changes["name"]
        if "avatar_url" in changes:
            updates["avatar_url"] = changes["avatar_url"]
        slug = changes.get("slug")
        if slug is not None:
            validate_team_slug(slug)
            existing = self.team_repository.get_by_slug(slug)
            if existing is not None and existing.id != team_id:
                raise ConflictException("This team URL is already taken.", code="slug_taken")
            updates["slug"] = slug
        with self.transaction():
            self.team_repository.update(team, **updates)
        return team

    @BaseService.measure_operation("delete_team")
    def delete_team(self, clerk_user_id: str, team_id: str) -> None:
        if not self.team_auth.is_team_owner(team_id, clerk_user_id):
            raise ForbiddenException("Only the team owner can delete a team.", code="owner_only")
        team = self.team_auth.require_team(team_id)
        with self.transaction():
            self.team_repository.delete(team)
        self.log_operation("team_deleted", team_id=team_id)

    # Members

    def _profile(self, member: TeamMember) -> MemberProfile:
        try:
            user = self.clerk_client.get_user(member.clerk_user_id)
        except ClerkApiError as exc:
            self.logger.warning(f"Could not load profile for {member.clerk_user_id}: {exc}")
            return MemberProfile(member=member, email=None, name=None, image_url=None)
        return MemberProfile(member=member, email=user.email, name=user.full_name, image_url=user.image_url)

    def list_members(self, clerk_user_id: str, team_id: str) -> List[MemberProfile]:
        self.team_auth.require_team_member(team_id, clerk_user_id)
        return [self._profile(member) for member in self.member_repository.list_for_team(team_id)]

    def _require_target(self, team_id: str, member_id: str) -> TeamMember:
        target = self.member_repository.get_in_team(team_id, member_id)
        if target is None:
            raise NotFoundException("Member not found", code="member_not_found")
        return target

    @BaseService.measure_operation("update_member_role")
    def update_member_role(self, clerk_user_id: str, team_id: str, member_id: str, role: str) -> TeamMember:
        self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.ADMIN.value)
        target = self._require_target(team_id, member_id)
        if self.team_auth.is_team_owner(team_id, target.clerk_user_id):
            raise ForbiddenException("The team owner's role cannot be changed.", code="owner_protected")
        with self.transaction():
            self.member_repository.update(target, role=role)
        return target

    @BaseService.measure_operation("remove_member")
    def remove_member(self, clerk_user_id: str, team_id: str, member_id: str) -> None:
        """Members may remove themselves; admins may remove anyone except the owner."""
        target = self._require_target(team_id, member_id)
        if self.team_auth.is_team_owner(team_id, target.clerk_user_id):
            raise ForbiddenException("The team owner cannot be removed.", code="owner_protected")
        is_self = target.clerk_user_id == clerk_user_id
        if not is_self:
            self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.ADMIN.value)

        team = self.team_auth.require_team(team_id)
        removed_user_id = target.clerk_user_id
        with self.transaction():
            self.member_repository.delete(target)
        self.log_operation("member_removed", team_id=team_id, member=removed_user_id, by=clerk_user_id)

        if is_self:
            return
        removed = self.clerk_client.get_user_email_info(removed_user_id)
        if removed is None:
            return
        remover = self.clerk_client.get_user_email_info(clerk_user_id)
        self._send_best_effort(
            "member removed",
            self.email_service.send_member_removed,
            removed.email,
            removed.name,
            team.name,
            remover.name if remover else "A team admin",
        )

    # Invitations

    def list_invitations(self, clerk_user_id: str, team_id: str) -> List[TeamInvitation]:
        self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.ADMIN.value)
        return self.invitation_repository.list_pending_for_team(team_id)

    def _seat_limit(self, team: Team) -> Optional[int]:
        owner_subscription = self.subscription_repository.get_by_user(team.owner_clerk_user_id)
        plan = owner_subscription.plan_type if owner_subscription else PlanType.TEAM.value
        return get_plan_config(plan).seats

    @BaseService.measure_operation("create_invitation")
    def create_invitation(self, clerk_user_id: str, team_id: str, email: str, role: str) -> TeamInvitation:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id, TeamRole.ADMIN.value)
        email = email.lower()

        seats = self._seat_limit(team)
        if seats is not None:
            used = self.member_repository.count(team_id=team_id) + self.invitation_repository.count(
                team_id=team_id, status=InvitationStatus.PENDING.value
            )
            if used >= seats:
                raise ForbiddenException(
                    f"Your team has reached the maximum of {seats} seats (including pending invitations).",
                    code="seat_limit",
                )

        if self.invitation_repository.find_pending(team_id, email) is not None:
            raise ConflictException(
                "An invitation has already been sent to this email.", code="duplicate_invitation"
            )

        with self.transaction():
            invitation = self.invitation_repository.create(
                team_id=team_id,
                email=email,
                role=role,
                invited_by_clerk_user_id=clerk_user_id,
                token=generate_invitation_token(),
                status=InvitationStatus.PENDING.value,
                expires_at=utc_now() + timedelta(days=INVITATION_EXPIRY_DAYS),
            )

        try:
            enqueue_task(
                "lively_icons.tasks.invitations.send_invitation_email",
                kwargs={"invitation_id": invitation.id},
            )
        except Exception as exc:
            self.logger.error(f"Failed to enqueue invitation email for {invitation.id}: {exc}")
        self.log_operation("invitation_created", team_id=team_id, invitation_id=invitation.id)
        return invitation

    @BaseService.measure_operation("revoke_invitation")
    def revoke_invitation(self, clerk_user_id: str, team_id: str, invitation_id: str) -> None:
        self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.ADMIN.value)
        invitation = self.invitation_repository.get_in_team(team_id, invitation_id)
        if invitation is None:
            raise NotFoundException("Invitation not found", code="invitation_not_found")
        if invitation.status != InvitationStatus.PENDING.value:
            raise ValidationException("Only pending invitations can be revoked.", code="not_pending")
        with self.transaction():
            self.invitation_repository.update(invitation, status=InvitationStatus.REVOKED.value)

    def _require_usable_invitation(self, token: str) -> TeamInvitation:
        invitation = self.invitation_repository.get_by_token(token)
        if invitation is None:
            raise NotFoundException("Invitation not found", code="invitation_not_found")
        if invitation.status != InvitationStatus.PENDING.value:
            raise GoneException(
                "This invitation is no longer valid.", code="invitation_invalid", details={"status": invitation.status}
            )
        if utc_now() > as_utc(invitation.expires_at):
            with self.transaction():
                self.invitation_repository.update(invitation, status=InvitationStatus.EXPIRED.value)
            raise GoneException(
                "This invitation has expired.", code="invitation_expired", details={"status": "expired"}
            )
        return invitation

    def get_invitation_preview(self, token: str) -> InvitationPreview:
        """Public details for the invitation landing page."""
        invitation = self._require_usable_invitation(token)
        team = self.team_repository.get_by_id(invitation.team_id)
        inviter = self.clerk_client.get_user_email_info(invitation.invited_by_clerk_user_id)
        return InvitationPreview(
            invitation=invitation,
            team_name=team.name if team else "Unknown Team",
            team_slug=team.slug if team else None,
            team_avatar_url=team.avatar_url if team else None,
            inviter_name=inviter.name if inviter else "A team member",
        )

    @BaseService.measure_operation("accept_invitation")
    def accept_invitation(
        self, clerk_user_id: str, token: str, user_email: Optional[str] = None, send_welcome: bool = True
    ) -> AcceptResult:
        """
        Join the invitation's team.

        When ``user_email`` is known it must match the invited address.
        """
        invitation = self._require_usable_invitation(token)
        if user_email is not None and user_email.lower() != invitation.email.lower():
            raise ForbiddenException(
                "This invitation was sent to a different email address.", code="email_mismatch"
            )

        existing = self.member_repository.get_membership(invitation.team_id, clerk_user_id)
        with self.transaction():
            if existing is None:
                self.member_repository.create(
                    team_id=invitation.team_id, clerk_user_id=clerk_user_id, role=invitation.role
                )
            self.invitation_repository.update(
                invitation, status=InvitationStatus.ACCEPTED.value, accepted_at=utc_now()
            )
        if existing is not None:
            return AcceptResult(team_id=invitation.team_id, role=existing.role, already_member=True)

        self.log_operation("invitation_accepted", team_id=invitation.team_id, member=clerk_user_id)
        if send_welcome:
            team = self.team_repository.get_by_id(invitation.team_id)
            user = self.clerk_client.get_user_email_info(clerk_user_id)
            if team is not None and user is not None:
                self._send_best_effort(
                    "team welcome",
                    self.email_service.send_team_welcome,
                    user.email,
                    user.name,
                    team.name,
                    team.slug,
                    invitation.role,
                )
        return AcceptResult(team_id=invitation.team_id, role=invitation.role)

    def accept_pending_for_email(self, clerk_user_id: str, email: str) -> List[str]:
        """Join every team with an unexpired pending invitation for ``email``; returns team ids."""
        joined: List[str] = []
        for invitation in self.invitation_repository.list_pending_for_email(email, utc_now()):
            result = self.accept_invitation(clerk_user_id, invitation.token, send_welcome=False)
            joined.append(result.team_id)
        return joined

    @BaseService.measure_operation("send_invitation_email")
    def send_invitation_email(self, invitation_id: str) -> bool:
        """Email a pending invitation; returns False when it is no longer pending."""
        invitation = self.invitation_repository.get_by_id(invitation_id)
        if invitation is None or invitation.status != InvitationStatus.PENDING.value:
            return False
        team = self.team_repository.get_by_id(invitation.team_id)
        inviter = self.clerk_client.get_user_email_info(invitation.invited_by_clerk_user_id)
        self.email_service.send_team_invitation(
            invitation.email,
            inviter_name=inviter.name if inviter else "A team member",
            team_name=team.name if team else "a team",
            role=invitation.role,
            accept_url=invitation_accept_url(invitation.token),
            expires_in=INVITATION_EXPIRES_IN,
        )
        return True

    def expire_invitations(self) -> int:
        with self.transaction():
            expired = self.invitation_repository.expire_stale(utc_now())
        self.log_operation("invitations_expired", count=expired)
        return expired

    # Dashboard read models

    def get_analytics(self, clerk_user_id: str, team_id: str, period: str = "30d") -> Dict[str, Any]:
        self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.ADMIN.value)
        days = ANALYTICS_PERIODS.get(period, 30)
        since = utc_now() - timedelta(days=days)
        balance = self.team_tokens.get_team_token_balance(team_id)
        return {
            "period": period,
            "balance": (
                {"monthly": balance.monthly, "topUp": balance.top_up, "total": balance.total}
                if balance
                else None
            ),
            "dailyUsage": self.event_repository.team_daily_usage(team_id, since),
            "byMember": [
                {"clerkUserId": user_id, "count": count}
                for user_id, count in self.icon_repository.count_by_member(team_id, since)
            ],
            "byStyle": [
                {"style": style, "count": count}
                for style, count in self.icon_repository.count_by_style(team_id, since)
            ],
        }

    def list_library(
        self,
        clerk_user_id: str,
        team_id: str,
        *,
        search: Optional[str] = None,
        style: Optional[str] = None,
        created_by: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[GeneratedIcon], Dict[str, int]]:
        self.team_auth.require_team_member(team_id, clerk_user_id)
        page = max(1, page)
        limit = min(MAX_QUERY_LIMIT, max(1, limit))
        icons, total = self.icon_repository.list_for_team(
            team_id,
            search=search,
            style=style,
            created_by=created_by,
            limit=limit,
            offset=(page - 1) * limit,
        )
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": -(-total // limit),
        }
        return icons, pagination

    def figma_export(self, clerk_user_id: str, team_id: str) -> Dict[str, Any]:
        self.team_auth.require_team_member(team_id, clerk_user_id)
        icons = [
            {
                "id": icon.id,
                "name": icon.name,
                "svg": icon.svg_code,
                "metadata": {
                    "style": icon.style,
                    "animation": icon.animation,
                    "trigger": icon.trigger,
                    "tags": icon.tags or [],
                    "createdAt": as_utc(icon.created_at).isoformat(),
                },
            }
            for icon in self.icon_repository.list_all_for_team(team_id)
        ]
        return {"version": FIGMA_EXPORT_VERSION, "teamId": team_id, "iconCount": len(icons), "icons": icons}

    def list_collections(self, clerk_user_id: str, team_id: str) -> List[Collection]:
        self.team_auth.require_team_member(team_id, clerk_user_id)
        return self.collection_repository.list_for_team(team_id)

    def create_collection(
        self, clerk_user_id: str, team_id: str, name: str, description: Optional[str] = None
    ) -> Collection:
        self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.EDITOR.value)
        with self.transaction():
            return self.collection_repository.create(
                clerk_user_id=clerk_user_id, team_id=team_id, name=name, description=description
            )

    def list_shared_templates(self, clerk_user_id: str, team_id: str) -> List[StyleTemplate]:
        self.team_auth.require_team_member(team_id, clerk_user_id)
        return self.template_repository.list_shared_for_team(team_id)

    # Slack

    def get_slack_config(self, clerk_user_id: str, team_id: str) -> Team:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id, TeamRole.ADMIN.value)
        return team

    def configure_slack(
        self, clerk_user_id: str, team_id: str, webhook_url: str, channel_name: Optional[str] = None
    ) -> Team:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id, TeamRole.ADMIN.value)
        if not webhook_url.startswith(SLACK_WEBHOOK_PREFIX):
            raise ValidationException("Must be a valid Slack webhook URL", code="invalid_webhook")
        with self.transaction():
            self.team_repository.update(team, slack_webhook_url=webhook_url, slack_channel_name=channel_name)
        return team

    def remove_slack(self, clerk_user_id: str, team_id: str) -> None:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id, TeamRole.ADMIN.value)
        with self.transaction():
            self.team_repository.update(team, slack_webhook_url=None, slack_channel_name=None)

    def send_slack_test(self, clerk_user_id: str, team_id: str) -> None:
        team, _ = self.team_auth.require_team_access(team_id, clerk_user_id, TeamRole.ADMIN.value)
        if not team.slack_webhook_url:
            raise ValidationException("No Slack webhook configured for this team.", code="slack_not_configured")
        try:
            self.slack_service.send_test_message(team.slack_webhook_url, team.name)
        except SlackWebhookError as exc:
            self.logger.warning(f"Slack test failed for team {team_id}: {exc}")
            raise UpstreamServiceException(
                "Slack webhook returned an error. Check your webhook URL.", code="slack_failed"
            )

    def notify_icon_generated(
        self,
        team_id: str,
        icon_name: Optional[str],
        style: Optional[str],
        prompt: Optional[str],
        creator_id: Optional[str],
    ) -> bool:
        """Post the new-icon message to the team's Slack; False when Slack is not configured."""
        team = self.team_repository.get_by_id(team_id)
        if team is None or not team.slack_webhook_url:
            return False
        creator = self.clerk_client.get_user_email_info(creator_id) if creator_id else None
        self.slack_service.notify_icon_generated(
            team.slack_webhook_url,
            team_name=team.name,
            icon_name=icon_name,
            style=style,
            prompt=prompt,
            creator_name=creator.name if creator else None,
            channel=team.slack_channel_name,
        )
        return True
