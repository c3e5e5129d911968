# lively_icons/services/subscription_service.py
"""
Subscription Service for Lively Icons

Owns the per-user subscription row: plan changes driven by Stripe, the
past_due/active/canceled lifecycle and the generation gate that routes
consult before spending tokens.
"""

from dataclasses import dataclass
import logging
import math
from typing import Optional

from sqlalchemy.orm import Session

from ..core.constants import PLAN_CONFIG, UNLIMITED_TOKEN_BALANCE, PlanLimits, get_plan_config
from ..core.enums import PlanType, SubscriptionStatus
from ..core.exceptions import NotFoundException
from ..core.time_utils import first_of_next_month, format_long_date, utc_now
from ..models.subscription import Subscription
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationAllowance:
    allowed: bool
    tokens_remaining: int
    plan_type: str
    reason: Optional[str] = None


def monthly_allotment(plan_type: str) -> int:
    """Monthly token grant stored on the row; unlimited plans get a large finite balance."""
    tokens = get_plan_config(plan_type).monthly_tokens
    if math.isinf(tokens):
        return UNLIMITED_TOKEN_BALANCE
    return int(tokens)


class SubscriptionService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)

    def get_subscription(self, clerk_user_id: str) -> Optional[Subscription]:
        return self.subscription_repository.get_by_user(clerk_user_id)

    def require_subscription(self, clerk_user_id: str) -> Subscription:
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            raise NotFoundException("Subscription not found", code="subscription_not_found")
        return subscription

    @staticmethod
    def get_plan_limits(plan_type: str) -> PlanLimits:
        return get_plan_config(plan_type)

    @BaseService.measure_operation("can_generate")
    def can_generate(self, clerk_user_id: str) -> GenerationAllowance:
        """Check the user has an active subscription and at least one token."""
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            return GenerationAllowance(
                allowed=False,
                reason="No subscription found. Please sign up.",
                tokens_remaining=0,
                plan_type=PlanType.FREE.value,
            )

        if subscription.status == SubscriptionStatus.CANCELED.value:
            return GenerationAllowance(
                allowed=False,
                reason="Your subscription has been canceled.",
                tokens_remaining=0,
                plan_type=subscription.plan_type,
            )

        total = subscription.total_tokens
        if total < 1:
            config = get_plan_config(subscription.plan_type)
            if config.is_lifetime_tokens:
                message = (
                    "You've used all your free trial tokens. "
                    f"Upgrade to Pro for {int(PLAN_CONFIG['pro'].monthly_tokens)} monthly tokens."
                )
            else:
                refresh = format_long_date(subscription.tokens_refresh_date, "the 1st")
                message = f"You've used all your tokens this month. Tokens refresh on {refresh}."
            return GenerationAllowance(
                allowed=False, reason=message, tokens_remaining=0, plan_type=subscription.plan_type
            )

        return GenerationAllowance(allowed=True, tokens_remaining=total, plan_type=subscription.plan_type)

    @BaseService.measure_operation("create_free_subscription")
    def create_free_subscription(self, clerk_user_id: str, stripe_customer_id: str) -> Subscription:
        with self.transaction():
            subscription = self.subscription_repository.create(
                clerk_user_id=clerk_user_id,
                stripe_customer_id=stripe_customer_id,
                plan_type=PlanType.FREE.value,
                status=SubscriptionStatus.ACTIVE.value,
                tokens_balance=monthly_allotment(PlanType.FREE.value),
                top_up_tokens=0,
            )
        self.log_operation("free_subscription_created", clerk_user_id=clerk_user_id)
        return subscription

    @BaseService.measure_operation("update_plan")
    def update_plan(
        self, clerk_user_id: str, plan_type: str, stripe_subscription_id: Optional[str]
    ) -> Optional[Subscription]:
        """Apply a paid plan: reset the monthly balance and schedule the next refresh."""
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            self.logger.warning(f"update_plan: no subscription for {clerk_user_id}")
            return None
        config = get_plan_config(plan_type)
        with self.transaction():
            self.subscription_repository.update(
                subscription,
                plan_type=plan_type,
                stripe_subscription_id=stripe_subscription_id,
                status=SubscriptionStatus.ACTIVE.value,
                tokens_balance=monthly_allotment(plan_type),
                tokens_refresh_date=None if config.is_lifetime_tokens else first_of_next_month(),
                past_due_since=None,
            )
        self.log_operation("plan_updated", clerk_user_id=clerk_user_id, plan_type=plan_type)
        return subscription

    @BaseService.measure_operation("mark_past_due")
    def mark_past_due(self, clerk_user_id: str) -> Optional[Subscription]:
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            return None
        with self.transaction():
            self.subscription_repository.update(
                subscription,
                status=SubscriptionStatus.PAST_DUE.value,
                past_due_since=subscription.past_due_since or utc_now(),
            )
        return subscription

    @BaseService.measure_operation("reactivate")
    def reactivate(self, clerk_user_id: str) -> Optional[Subscription]:
        """Payment recovered: back to active, which also ends any dunning sequence."""
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            return None
        with self.transaction():
            self.subscription_repository.update(
                subscription, status=SubscriptionStatus.ACTIVE.value, past_due_since=None
            )
        return subscription

    @BaseService.measure_operation("downgrade_to_free")
    def downgrade_to_free(self, clerk_user_id: str) -> Optional[Subscription]:
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            return None
        with self.transaction():
            self.subscription_repository.update(
                subscription,
                plan_type=PlanType.FREE.value,
                status=SubscriptionStatus.ACTIVE.value,
                stripe_subscription_id=None,
                tokens_balance=0,
                top_up_tokens=0,
                tokens_refresh_date=None,
                past_due_since=None,
            )
        self.log_operation("downgraded_to_free", clerk_user_id=clerk_user_id)
        return subscription

    @BaseService.measure_operation("cancel")
    def cancel(self, clerk_user_id: str) -> Optional[Subscription]:
        subscription = self.get_subscription(clerk_user_id)
        if subscription is None:
            return None
        with self.transaction():
            self.subscription_repository.update(subscription, status=SubscriptionStatus.CANCELED.value)
        return subscription
