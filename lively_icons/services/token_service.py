# lively_icons/services/token_service.py
"""
Token Service for Lively Icons

Token balances live on the subscription row in two buckets: the monthly
(or lifetime, on free) allotment and purchased top-ups. Spending drains the
monthly bucket first. Top-ups never expire.
"""

from dataclasses import dataclass
import logging
import math
from typing import Optional

import redis
from sqlalchemy.orm import Session

from ..core.constants import LOW_BALANCE_EMAIL_COOLDOWN_SECONDS, LOW_BALANCE_THRESHOLD_RATIO, get_plan_config
from ..core.exceptions import ServiceException
from ..core.redis_client import get_redis
from ..core.time_utils import first_of_next_month, format_long_date
from ..integrations.clerk_client import ClerkClient, get_clerk_client
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .email import EmailService
from .subscription_service import monthly_allotment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenBalance:
    monthly: int
    top_up: int

    @property
    def total(self) -> int:
        return self.monthly + self.top_up


@dataclass(frozen=True)
class DeductionResult:
    success: bool
    remaining: int


def low_balance_threshold(plan_type: str) -> int:
    return int(math.ceil(get_plan_config(plan_type).monthly_tokens * LOW_BALANCE_THRESHOLD_RATIO))


def rollover_balance(plan_type: str, current_balance: int) -> int:
    """New monthly balance after a refresh, banking unused tokens up to the plan cap."""
    config = get_plan_config(plan_type)
    monthly = int(config.monthly_tokens)
    if config.token_rollover is None:
        return monthly
    max_banked = config.token_rollover.max_banked
    carried = min(current_balance, max_banked - monthly)
    return min(monthly + max(0, carried), max_banked)


def low_balance_cooldown_key(clerk_user_id: str) -> str:
    return f"email:low_balance:{clerk_user_id}"


class TokenService(BaseService):
    def __init__(
        self,
        db: Session,
        redis_client: Optional[redis.Redis] = None,
        email_service: Optional[EmailService] = None,
        clerk_client: Optional[ClerkClient] = None,
    ):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self._redis = redis_client
        self._email_service = email_service
        self._clerk_client = clerk_client

    @property
    def redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

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

    def get_balance(self, clerk_user_id: str) -> Optional[TokenBalance]:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None:
            return None
        return TokenBalance(monthly=subscription.tokens_balance, top_up=subscription.top_up_tokens)

    @BaseService.measure_operation("deduct_tokens")
    def deduct_tokens(self, clerk_user_id: str, amount: int, scope: str = "user") -> DeductionResult:
        """
        Spend ``amount`` tokens, monthly balance first, then top-ups.

        Returns ``success=False`` (and leaves balances untouched) when the
        combined balance is insufficient.
        """
        with self.transaction():
            subscription = self.subscription_repository.get_by_user_for_update(clerk_user_id)
            if subscription is None:
                return DeductionResult(success=False, remaining=0)

            total = subscription.total_tokens
            if total < amount:
                return DeductionResult(success=False, remaining=total)

            from_monthly = min(subscription.tokens_balance, amount)
            from_top_up = amount - from_monthly
            self.subscription_repository.update(
                subscription,
                tokens_balance=subscription.tokens_balance - from_monthly,
                top_up_tokens=subscription.top_up_tokens - from_top_up,
            )
            remaining = subscription.total_tokens

        prometheus_metrics.record_tokens_spent(scope, amount)
        return DeductionResult(success=True, remaining=remaining)

    @BaseService.measure_operation("credit_top_up")
    def credit_top_up(self, clerk_user_id: str, amount: int) -> Optional[TokenBalance]:
        with self.transaction():
            subscription = self.subscription_repository.get_by_user_for_update(clerk_user_id)
            if subscription is None:
                self.logger.warning(f"credit_top_up: no subscription for {clerk_user_id}")
                return None
            self.subscription_repository.update(
                subscription, top_up_tokens=subscription.top_up_tokens + amount
            )
        self.log_operation("top_up_credited", clerk_user_id=clerk_user_id, amount=amount)
        return TokenBalance(monthly=subscription.tokens_balance, top_up=subscription.top_up_tokens)

    @BaseService.measure_operation("refresh_monthly_tokens")
    def refresh_monthly_tokens(self, clerk_user_id: str) -> Optional[int]:
        """
        Grant the plan's monthly tokens with rollover.

        Lifetime-token plans (free) are skipped and return ``None``.
        """
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None:
            return None
        config = get_plan_config(subscription.plan_type)
        if config.is_lifetime_tokens:
            return None

        if math.isinf(config.monthly_tokens):
            new_balance = monthly_allotment(subscription.plan_type)
        else:
            new_balance = rollover_balance(subscription.plan_type, subscription.tokens_balance)

        with self.transaction():
            self.subscription_repository.update(
                subscription,
                tokens_balance=new_balance,
                tokens_refresh_date=first_of_next_month(),
            )
        self.log_operation("tokens_refreshed", clerk_user_id=clerk_user_id, balance=new_balance)
        return new_balance

    @BaseService.measure_operation("notify_low_balance")
    def notify_low_balance(self, clerk_user_id: str, remaining_tokens: int, plan_type: str) -> bool:
        """
        Email the user once per cooldown when the balance drops under 10% of
        the monthly allotment. Returns True when an email went out.

        Delivery problems are logged; they never fail the generation that
        triggered the check.
        """
        config = get_plan_config(plan_type)
        if config.is_lifetime_tokens or math.isinf(config.monthly_tokens):
            return False
        if remaining_tokens >= low_balance_threshold(plan_type):
            return False

        key = low_balance_cooldown_key(clerk_user_id)
        try:
            if self.redis.get(key):
                return False
        except redis.RedisError as exc:
            self.logger.warning(f"Low balance cooldown check failed for {clerk_user_id}: {exc}")
            return False

        user = self.clerk_client.get_user_email_info(clerk_user_id)
        if user is None:
            return False

        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        refresh = format_long_date(
            subscription.tokens_refresh_date if subscription else None, "your next billing date"
        )
        try:
            self.email_service.send_token_balance_low(user.email, user.name, remaining_tokens, refresh)
            self.redis.set(key, "1", ex=LOW_BALANCE_EMAIL_COOLDOWN_SECONDS)
        except (ServiceException, redis.RedisError) as exc:
            self.logger.error(f"Failed to send low balance notification to {clerk_user_id}: {exc}")
            return False
        return True
