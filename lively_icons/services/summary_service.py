# lively_icons/services/summary_service.py
"""
Monthly usage summary emails.

Covers the previous calendar month for every active paid subscriber.
Users without any activity in that month are skipped.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import GenerationEventType
from ..core.exceptions import ServiceException
from ..integrations.clerk_client import ClerkClient, get_clerk_client
from ..models.subscription import Subscription
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .email import EmailService
from .team_token_service import TEAM_PLANS

logger = logging.getLogger(__name__)


def previous_month_range(now: datetime) -> Tuple[datetime, datetime, str]:
    """Return ``(start, end, "October 2026")`` for the month before ``now``."""
    end = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    if now.month == 1:
        start = datetime(now.year - 1, 12, 1, tzinfo=timezone.utc)
    else:
        start = datetime(now.year, now.month - 1, 1, tzinfo=timezone.utc)
    return start, end, start.strftime("%B %Y")


@dataclass
class UserMonthStats:
    total_generations: int
    total_exports: int
    tokens_used: int

    @property
    def has_activity(self) -> bool:
        return self.total_generations > 0 or self.total_exports > 0


def summarize_events(stats: Dict[str, Tuple[int, int]]) -> UserMonthStats:
    def count(event_type: GenerationEventType) -> int:
        return stats.get(event_type.value, (0, 0))[0]

    return UserMonthStats(
        total_generations=count(GenerationEventType.GENERATE) + count(GenerationEventType.REFINE),
        total_exports=count(GenerationEventType.EXPORT),
        tokens_used=sum(tokens for _, tokens in stats.values()),
    )


class SummaryService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        clerk_client: Optional[ClerkClient] = None,
    ):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.event_repository = RepositoryFactory.create_generation_event_repository(db)
        self.team_repository = RepositoryFactory.create_team_repository(db)
        self.email_service = email_service or EmailService(db)
        self._clerk_client = clerk_client

    @property
    def clerk_client(self) -> ClerkClient:
        if self._clerk_client is None:
            self._clerk_client = get_clerk_client()
        return self._clerk_client

    def _team_stats(self, clerk_user_id: str, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        team_stats = []
        for team in self.team_repository.list_admin_teams(clerk_user_id):
            generations, tokens = self.event_repository.team_totals(team.id, start, end)
            top_member_id = self.event_repository.most_active_member(team.id, start, end)
            top_member = self.clerk_client.get_user_email_info(top_member_id) if top_member_id else None
            team_stats.append(
                {
                    "team_name": team.name,
                    "team_generations": generations,
                    "team_tokens_used": tokens,
                    "most_active_member": (top_member.name or top_member.email) if top_member else None,
                }
            )
        return team_stats

    def send_summary(self, subscription: Subscription, start: datetime, end: datetime, month: str) -> bool:
        """Send one user's summary; False when skipped."""
        user_id = subscription.clerk_user_id
        stats = summarize_events(self.event_repository.user_stats_by_type(user_id, start, end))
        if not stats.has_activity:
            return False

        user = self.clerk_client.get_user_email_info(user_id)
        if user is None:
            return False

        team_stats = None
        if subscription.plan_type in TEAM_PLANS:
            team_stats = self._team_stats(user_id, start, end) or None

        self.email_service.send_monthly_summary(
            user.email,
            user_name=user.name,
            month=month,
            total_generations=stats.total_generations,
            total_exports=stats.total_exports,
            most_used_style=self.event_repository.most_used_style(user_id, start, end),
            tokens_used=stats.tokens_used,
            tokens_remaining=subscription.total_tokens,
            plan_type=subscription.plan_type,
            team_stats=team_stats,
        )
        return True

    @BaseService.measure_operation("send_monthly_summaries")
    def send_monthly_summaries(self, now: datetime) -> Dict[str, int]:
        start, end, month = previous_month_range(now)
        subscriptions = self.subscription_repository.list_active_paid()
        sent = skipped = 0
        for subscription in subscriptions:
            try:
                delivered = self.send_summary(subscription, start, end, month)
            except ServiceException as exc:
                self.logger.error(f"Failed to send summary to {subscription.clerk_user_id}: {exc.message}")
                delivered = False
            if delivered:
                sent += 1
            else:
                skipped += 1
        self.log_operation("monthly_summaries_sent", month=month, sent=sent, skipped=skipped)
        return {"sent": sent, "skipped": skipped, "total": len(subscriptions)}
