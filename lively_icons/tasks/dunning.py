"""
Celery tasks for the payment failure (dunning) sequence.

The chain is started by ``start_dunning`` when Stripe reports a failed
invoice. Each step schedules the next one with a countdown.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional

from lively_icons.core.time_utils import as_utc
from lively_icons.database import get_db_session
from lively_icons.services.dunning_service import DunningService, DunningStage, stage_delay_seconds
from lively_icons.tasks import BaseTask, celery_app
from lively_icons.tasks.enqueue import enqueue_task

logger = logging.getLogger(__name__)

DUNNING_STEP_TASK = "lively_icons.tasks.dunning.dunning_step"


def _schedule(
    clerk_user_id: str,
    stage: DunningStage,
    past_due_since: Optional[str],
    previous: Optional[DunningStage] = None,
) -> Any:
    return enqueue_task(
        DUNNING_STEP_TASK,
        kwargs={
            "clerk_user_id": clerk_user_id,
            "stage": stage.value,
            "past_due_since": past_due_since,
        },
        countdown=stage_delay_seconds(stage, previous),
    )


def start_dunning(clerk_user_id: str, past_due_since: Optional[datetime]) -> Any:
    """Schedule the first dunning email for a subscription that just went past due."""
    stamp = as_utc(past_due_since).isoformat() if past_due_since else None
    logger.info(f"Starting dunning sequence for {clerk_user_id}")
    return _schedule(clerk_user_id, DunningStage.PAYMENT_FAILED, stamp)


@celery_app.task(
    base=BaseTask,
    name=DUNNING_STEP_TASK,
    bind=True,
    max_retries=3,
)
def dunning_step(
    self, clerk_user_id: str, stage: str, past_due_since: Optional[str] = None
) -> Dict[str, Any]:
    current = DunningStage(stage)
    stamp = datetime.fromisoformat(past_due_since) if past_due_since else None
    try:
        with get_db_session() as db:
            outcome, following = DunningService(db).run_step(clerk_user_id, current, stamp)
    except Exception as exc:
        logger.error(f"Dunning step {stage} failed for {clerk_user_id}: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))

    if following is not None:
        _schedule(clerk_user_id, following, past_due_since, previous=current)
    return {"stage": stage, "outcome": outcome, "next": following.value if following else None}
