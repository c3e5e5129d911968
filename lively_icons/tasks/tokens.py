"""Celery task for the monthly token refresh sweep."""

import logging
from typing import Dict

from lively_icons.core.exceptions import ServiceException
from lively_icons.core.time_utils import utc_now
from lively_icons.database import get_db_session
from lively_icons.repositories.factory import RepositoryFactory
from lively_icons.services.token_service import TokenService
from lively_icons.tasks import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    base=BaseTask,
    name="lively_icons.tasks.tokens.refresh_due_tokens",
    bind=True,
    max_retries=3,
)
def refresh_due_tokens(self) -> Dict[str, int]:
    """Refresh subscriptions whose token refresh date has passed."""
    refreshed = failed = 0
    try:
        with get_db_session() as db:
            due = RepositoryFactory.create_subscription_repository(db).list_due_for_refresh(utc_now())
            token_service = TokenService(db)
            for subscription in due:
                try:
                    token_service.refresh_monthly_tokens(subscription.clerk_user_id)
                    refreshed += 1
                except ServiceException as exc:
                    failed += 1
                    logger.error(f"Token refresh failed for {subscription.clerk_user_id}: {exc.message}")
    except Exception as exc:
        logger.error(f"Token refresh sweep failed: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))

    logger.info(f"Refreshed tokens for {refreshed} subscriptions ({failed} failed)")
    return {"refreshed": refreshed, "failed": failed}
