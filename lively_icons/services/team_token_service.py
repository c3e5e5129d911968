"""Shared team token pool, backed by the team owner's subscription."""

from dataclasses import dataclass
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import PlanType, SubscriptionStatus
from ..core.time_utils import format_long_date
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .token_service import DeductionResult, TokenBalance, TokenService

logger = logging.getLogger(__name__)

TEAM_PLANS = (PlanType.TEAM.value, PlanType.ENTERPRISE.value)


@dataclass(frozen=True)
class TeamAllowance:
    allowed: bool
    tokens_remaining: int
    reason: Optional[str] = None


class TeamTokenService(BaseService):
    def __init__(self, db: Session, token_service: Optional[TokenService] = None):
        super().__init__(db)
        self.team_repository = RepositoryFactory.create_team_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.token_service = token_service or TokenService(db)

    def get_team_owner_user_id(self, team_id: str) -> Optional[str]:
        team = self.team_repository.get_by_id(team_id)
        return team.owner_clerk_user_id if team else None

    def deduct_team_tokens(self, team_id: str, amount: int) -> DeductionResult:
        owner = self.get_team_owner_user_id(team_id)
        if owner is None:
            return DeductionResult(success=False, remaining=0)
        return self.token_service.deduct_tokens(owner, amount, scope="team")

    def get_team_token_balance(self, team_id: str) -> Optional[TokenBalance]:
        owner = self.get_team_owner_user_id(team_id)
        if owner is None:
            return None
        return self.token_service.get_balance(owner)

    @BaseService.measure_operation("can_team_generate")
    def can_team_generate(self, team_id: str) -> TeamAllowance:
        owner = self.get_team_owner_user_id(team_id)
        if owner is None:
            return TeamAllowance(allowed=False, reason="Team not found.", tokens_remaining=0)

        subscription = self.subscription_repository.get_by_user(owner)
        if subscription is None:
            return TeamAllowance(
                allowed=False, reason="Team owner has no subscription.", tokens_remaining=0
            )
        if subscription.status != SubscriptionStatus.ACTIVE.value:
            return TeamAllowance(
                allowed=False, reason="The team subscription is not active.", tokens_remaining=0
            )
        if subscription.plan_type not in TEAM_PLANS:
            return TeamAllowance(
                allowed=False,
                reason="The team owner does not have a Team or Enterprise plan.",
                tokens_remaining=0,
            )

        total = subscription.total_tokens
        if total < 1:
            refresh = format_long_date(subscription.tokens_refresh_date, "the 1st")
            return TeamAllowance(
                allowed=False,
                reason=f"The team has used all tokens this month. Tokens refresh on {refresh}.",
                tokens_remaining=0,
            )
        return TeamAllowance(allowed=True, tokens_remaining=total)
