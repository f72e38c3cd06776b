"""Celery wiring for the periodic lifecycle trigger."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

from mentorship.tasks.beat_schedule import get_beat_schedule
from mentorship.tasks.celery_app import celery_app
from mentorship.tasks.lifecycle_tasks import run_session_lifecycle


def test_beat_schedule_runs_lifecycle_on_interval():
    schedule = get_beat_schedule(interval_minutes=10)
    entry = schedule["run-session-lifecycle"]
    assert entry["task"] == "mentorship.tasks.lifecycle_tasks.run_session_lifecycle"
    assert entry["schedule"] == timedelta(minutes=10)
    assert entry["options"]["queue"] == "lifecycle"


def test_task_is_registered_and_routed():
    assert "mentorship.tasks.lifecycle_tasks.run_session_lifecycle" in celery_app.tasks
    assert celery_app.conf.task_serializer == "json"


def test_task_runs_all_passes_and_closes_session():
    db = MagicMock()
    summary = {"errors": [], "skipped_passes": []}
    with patch("mentorship.tasks.lifecycle_tasks.SessionLocal", return_value=db), patch(
        "mentorship.tasks.lifecycle_tasks.SessionLifecycleService"
    ) as service_cls:
        service_cls.return_value.run_all.return_value = summary
        result = run_session_lifecycle.run()

    assert result == summary
    service_cls.assert_called_once_with(db)
    db.close.assert_called_once()
