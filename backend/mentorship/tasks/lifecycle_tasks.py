# backend/mentorship/tasks/lifecycle_tasks.py
"""Celery task wrapping one run of the session lifecycle engine."""

import logging
from typing import Any, Dict

from ..database import SessionLocal
from ..services.session_lifecycle_service import SessionLifecycleService
from .celery_app import LoggedTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(base=LoggedTask, name="mentorship.tasks.lifecycle_tasks.run_session_lifecycle")
def run_session_lifecycle() -> Dict[str, Any]:
    db = SessionLocal()
    try:
        summary = SessionLifecycleService(db).run_all()
        if summary["errors"]:
            logger.warning(
                "Session lifecycle finished with errors",
                extra={"error_count": len(summary["errors"]), "skipped_passes": summary["skipped_passes"]},
            )
        return summary
    finally:
        db.close()
