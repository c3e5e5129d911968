"""Celery task for team Slack notifications."""

import logging
from typing import Any, Dict, Optional

from lively_icons.database import get_db_session
from lively_icons.services.team_service import TeamService
from lively_icons.tasks import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    base=BaseTask,
    name="lively_icons.tasks.slack.notify_icon_generated",
    bind=True,
    max_retries=3,
)
def notify_icon_generated(
    self,
    team_id: str,
    icon_name: Optional[str] = None,
    style: Optional[str] = None,
    prompt: Optional[str] = None,
    creator_id: Optional[str] = None,
) -> Dict[str, Any]:
    try:
        with get_db_session() as db:
            posted = TeamService(db).notify_icon_generated(team_id, icon_name, style, prompt, creator_id)
    except Exception as exc:
        logger.error(f"Slack notification failed for team {team_id}: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))
    return {"team_id": team_id, "posted": posted}
