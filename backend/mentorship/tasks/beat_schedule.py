# backend/mentorship/tasks/beat_schedule.py
"""Celery Beat schedule for the session lifecycle."""

from datetime import timedelta
from typing import Any, Dict, Optional

from ..core.config import settings

LIFECYCLE_QUEUE = "lifecycle"


def get_beat_schedule(interval_minutes: Optional[int] = None) -> Dict[str, Dict[str, Any]]:
    """
    Run the lifecycle every ``interval_minutes`` (default from settings).

    The interval must stay well under the one-hour minimum-attendance window
    so every session is examined at least once inside it.
    """
    minutes = interval_minutes or settings.lifecycle_interval_minutes
    return {
        "run-session-lifecycle": {
            "task": "mentorship.tasks.lifecycle_tasks.run_session_lifecycle",
            "schedule": timedelta(minutes=minutes),
            "options": {"queue": LIFECYCLE_QUEUE, "expires": minutes * 60},
        },
    }
