"""Celery Beat schedule for Lively Icons periodic jobs (all times UTC)."""

from typing import Any, Dict

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    "expire-team-invitations": {
        "task": "lively_icons.tasks.invitations.expire_invitations",
        "schedule": crontab(hour=3, minute=0),
    },
    "send-monthly-summaries": {
        "task": "lively_icons.tasks.summary.send_monthly_summaries",
        "schedule": crontab(day_of_month=1, hour=9, minute=0),
    },
    # Webhook-driven refreshes cover normal renewals; this catches missed ones
    "refresh-due-tokens": {
        "task": "lively_icons.tasks.tokens.refresh_due_tokens",
        "schedule": crontab(hour=0, minute=15),
    },
}


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return dict(CELERYBEAT_SCHEDULE)
