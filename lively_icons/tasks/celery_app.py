# lively_icons/tasks/celery_app.py
"""
Celery application configuration for Lively Icons.

Redis is the broker. Task modules are listed explicitly in ``imports`` so
workers register every task even without autodiscovery.
"""

import logging
from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from lively_icons.core.config import settings

TASK_MODULES = (
    "lively_icons.tasks.batch",
    "lively_icons.tasks.dunning",
    "lively_icons.tasks.invitations",
    "lively_icons.tasks.slack",
    "lively_icons.tasks.summary",
    "lively_icons.tasks.tokens",
)


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = settings.broker_url

    celery_app = Celery("lively_icons", broker=broker_url, backend=broker_url)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": "UTC",
            "enable_utc": True,
            "task_ignore_result": True,
            "worker_prefetch_multiplier": 1,
            "worker_max_tasks_per_child": 1000,
            # Batch generation calls the AI provider once per prompt
            "task_soft_time_limit": 900,
            "task_time_limit": 1200,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_default_retry_delay": 60,
            "task_max_retries": 3,
            "task_always_eager": settings.celery_always_eager,
            "worker_hijack_root_logger": False,
            # Dunning steps are scheduled days ahead
            "broker_transport_options": {"visibility_timeout": 15 * 24 * 60 * 60},
        }
    )
    celery_app.conf.imports = TASK_MODULES
    celery_app.conf.task_routes = {
        "lively_icons.tasks.batch.*": {"queue": "generation"},
        "lively_icons.tasks.invitations.*": {"queue": "email"},
        "lively_icons.tasks.dunning.*": {"queue": "email"},
        "lively_icons.tasks.summary.*": {"queue": "email"},
    }

    from lively_icons.tasks.beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()
    return celery_app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure root logging for worker processes."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task with automatic retry and failure logging."""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 3, "countdown": 60}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name, "task_args": str(args)},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={"task_id": task_id, "task_name": self.name, "retry_count": self.request.retries},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app.Task = cast(Type[Task], BaseTask)


@celery_app.task(name="lively_icons.tasks.health_check")  # type: ignore[misc]
def health_check() -> Dict[str, str]:
    return {"status": "healthy"}
