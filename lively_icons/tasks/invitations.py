"""Celery tasks for team invitation emails and expiry."""

import logging
from typing import Any, Dict

from lively_icons.database import get_db_session
from lively_icons.services.team_service import TeamService
from lively_icons.tasks import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    base=BaseTask,
    name="lively_icons.tasks.invitations.send_invitation_email",
    bind=True,
    max_retries=3,
)
def send_invitation_email(self, invitation_id: str) -> Dict[str, Any]:
    """Email the invitation link if the invitation is still pending."""
    try:
        with get_db_session() as db:
            sent = TeamService(db).send_invitation_email(invitation_id)
    except Exception as exc:
        logger.error(f"Error sending invitation email {invitation_id}: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))

    if not sent:
        logger.info(f"Invitation {invitation_id} is no longer pending; email skipped")
    return {"invitation_id": invitation_id, "sent": sent}


@celery_app.task(
    base=BaseTask,
    name="lively_icons.tasks.invitations.expire_invitations",
    bind=True,
    max_retries=3,
)
def expire_invitations(self) -> Dict[str, int]:
    """Mark pending invitations past their expiry as expired."""
    try:
        with get_db_session() as db:
            expired = TeamService(db).expire_invitations()
    except Exception as exc:
        logger.error(f"Error expiring invitations: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))

    logger.info(f"Expired {expired} team invitations")
    return {"expired": expired}
