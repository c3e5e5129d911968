"""
Dunning sequence after a failed subscription payment.

Timeline, measured from the first failure:
  day 3   PaymentFailed email
  day 7   ProAccessWarning email
  day 14  downgrade to free + AccountPaused email

Each step is a delayed Celery task. A step only acts while the
subscription is still past_due *and* still carries the ``past_due_since``
stamp the sequence was started with, so a payment that succeeds (or a
later, separate failure) silently retires an older sequence.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import DUNNING_ACCESS_WARNING_DAY, DUNNING_DOWNGRADE_DAY, DUNNING_PAYMENT_FAILED_DAY
from ..core.enums import SubscriptionStatus
from ..core.time_utils import as_utc
from ..integrations.clerk_client import ClerkClient, get_clerk_client
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .email import EmailService
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class DunningStage(str, Enum):
    PAYMENT_FAILED = "payment_failed"
    ACCESS_WARNING = "access_warning"
    DOWNGRADE = "downgrade"


# stage -> (days after the failure, next stage)
DUNNING_SCHEDULE = {
    DunningStage.PAYMENT_FAILED: (DUNNING_PAYMENT_FAILED_DAY, DunningStage.ACCESS_WARNING),
    DunningStage.ACCESS_WARNING: (DUNNING_ACCESS_WARNING_DAY, DunningStage.DOWNGRADE),
    DunningStage.DOWNGRADE: (DUNNING_DOWNGRADE_DAY, None),
}


def stage_delay_seconds(stage: DunningStage, previous: Optional[DunningStage] = None) -> int:
    """Countdown from the previous stage (or from the failure) to ``stage``."""
    day = DUNNING_SCHEDULE[stage][0]
    previous_day = DUNNING_SCHEDULE[previous][0] if previous else 0
    return (day - previous_day) * SECONDS_PER_DAY


def next_stage(stage: DunningStage) -> Optional[DunningStage]:
    return DUNNING_SCHEDULE[stage][1]


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return False
    return abs((as_utc(a) - as_utc(b)).total_seconds()) < 1


class DunningService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        clerk_client: Optional[ClerkClient] = None,
    ):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.subscription_service = SubscriptionService(db)
        self.email_service = email_service or EmailService(db)
        self._clerk_client = clerk_client

    @property
    def clerk_client(self) -> ClerkClient:
        if self._clerk_client is None:
            self._clerk_client = get_clerk_client()
        return self._clerk_client

    def is_still_past_due(self, clerk_user_id: str, past_due_since: Optional[datetime]) -> bool:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None or subscription.status != SubscriptionStatus.PAST_DUE.value:
            return False
        if past_due_since is None:
            return True
        return _same_instant(subscription.past_due_since, past_due_since)

    @BaseService.measure_operation("run_dunning_step")
    def run_step(
        self, clerk_user_id: str, stage: DunningStage, past_due_since: Optional[datetime]
    ) -> Tuple[str, Optional[DunningStage]]:
        """
        Execute one dunning stage.

        Returns ``(outcome, next_stage)``; ``next_stage`` is None when the
        sequence is over (resolved or completed).
        """
        if not self.is_still_past_due(clerk_user_id, past_due_since):
            self.log_operation("dunning_resolved", clerk_user_id=clerk_user_id, stage=stage.value)
            return "resolved", None

        if stage is DunningStage.DOWNGRADE:
            self.subscription_service.downgrade_to_free(clerk_user_id)

        user = self.clerk_client.get_user_email_info(clerk_user_id)
        if user is None:
            self.logger.warning(f"Dunning {stage.value}: no email for {clerk_user_id}")
        elif stage is DunningStage.PAYMENT_FAILED:
            self.email_service.send_payment_failed(user.email, user.name)
        elif stage is DunningStage.ACCESS_WARNING:
            self.email_service.send_pro_access_warning(user.email, user.name)
        else:
            self.email_service.send_account_paused(user.email, user.name)

        self.log_operation("dunning_step", clerk_user_id=clerk_user_id, stage=stage.value)
        if stage is DunningStage.DOWNGRADE:
            return "completed", None
        return "sent", next_stage(stage)
