"""Celery task for asynchronous batch icon generation."""

import logging
from typing import Any, Dict, Optional

from lively_icons.database import get_db_session
from lively_icons.services.generation_service import DEFAULT_DURATION, GenerationService
from lively_icons.tasks import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    base=BaseTask,
    name="lively_icons.tasks.batch.generate_batch",
    bind=True,
    autoretry_for=(),
    max_retries=0,
)
def generate_batch(
    self, batch_id: str, trigger: Optional[str] = None, duration: float = DEFAULT_DURATION
) -> Dict[str, Any]:
    """
    Generate every prompt of a queued batch job.

    Tokens were charged when the batch was created, so the task is not
    retried; per-prompt failures are counted on the job instead.
    """
    logger.info(f"Starting batch generation {batch_id}")
    with get_db_session() as db:
        result = GenerationService(db).run_batch(batch_id, trigger=trigger, duration=duration)
    logger.info(
        f"Batch {batch_id} finished: {result['completed']} completed, {result['failed']} failed"
    )
    return result
