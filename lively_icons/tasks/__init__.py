# lively_icons/tasks/__init__.py
"""
Celery tasks package for Lively Icons.

- batch: asynchronous multi-prompt generation
- dunning: payment failure email sequence
- invitations: team invitation emails and expiry
- slack: team Slack notifications
- summary: monthly usage summary emails
- tokens: monthly token refresh sweep
"""

from lively_icons.tasks.celery_app import BaseTask, celery_app

__all__ = ["celery_app", "BaseTask"]
