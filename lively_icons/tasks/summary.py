"""Celery task for the monthly usage summary emails."""

import logging
from typing import Dict

from lively_icons.core.time_utils import utc_now
from lively_icons.database import get_db_session
from lively_icons.services.summary_service import SummaryService
from lively_icons.tasks import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    base=BaseTask,
    name="lively_icons.tasks.summary.send_monthly_summaries",
    bind=True,
    max_retries=1,
)
def send_monthly_summaries(self) -> Dict[str, int]:
    """Send last month's summary to every active paid subscriber."""
    try:
        with get_db_session() as db:
            result = SummaryService(db).send_monthly_summaries(utc_now())
    except Exception as exc:
        logger.error(f"Monthly summary run failed: {str(exc)}")
        raise self.retry(exc=exc, countdown=600)

    logger.info(f"Monthly summaries: {result['sent']} sent, {result['skipped']} skipped")
    return result
