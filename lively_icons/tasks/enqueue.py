"""
Centralized task enqueue helper.

Services enqueue by task name so they never import task modules (which
import services in turn).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .celery_app import celery_app

logger = logging.getLogger(__name__)


def enqueue_task(
    task_name: str,
    args: Optional[Tuple[Any, ...]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> Any:
    """
    Enqueue a Celery task by its registered name.

    Args:
        task_name: Fully qualified task name (e.g. "lively_icons.tasks.batch.generate_batch")
        args: Positional arguments for the task
        kwargs: Keyword arguments for the task
        **options: Additional apply_async options (countdown, eta, queue)
    """
    args = args or ()
    kwargs = kwargs or {}
    task = celery_app.tasks.get(task_name)
    logger.debug("Enqueueing %s", task_name)
    if task is not None:
        return task.apply_async(args=args, kwargs=kwargs, **options)
    return celery_app.send_task(task_name, args=args, kwargs=kwargs, **options)
