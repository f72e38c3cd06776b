# backend/mentorship/tasks/celery_app.py
"""
Celery application for scheduled work.

Redis (``settings.redis_url``) is broker and result backend. Beat enqueues the
session lifecycle run on the ``lifecycle`` queue; the internal cron endpoint
runs the same engine in-process.
"""

import logging
from typing import Any

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings
from .beat_schedule import LIFECYCLE_QUEUE, get_beat_schedule

logger = logging.getLogger(__name__)


def create_celery_app() -> Celery:
    app = Celery("mentorship", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        # One lifecycle run at a time per worker process; runs are short
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        task_soft_time_limit=240,
        task_time_limit=300,
        result_expires=3600,
        worker_hijack_root_logger=False,
        imports=("mentorship.tasks.lifecycle_tasks",),
        task_routes={"mentorship.tasks.lifecycle_tasks.*": {"queue": LIFECYCLE_QUEUE}},
    )

    app.conf.beat_schedule = get_beat_schedule()
    return app


@setup_logging.connect  # type: ignore[misc]
def configure_worker_logging(*args: Any, **kwargs: Any) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


celery_app = create_celery_app()


class LoggedTask(Task):  # type: ignore[misc]
    """Logs the failing task's id and name before Celery records the failure."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            "Task %s[%s] failed: %s",
            self.name,
            task_id,
            exc,
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)
