# backend/mentorship/repositories/call_repository.py
"""Data access for one-on-one calls."""

from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import CALL_DURATIONS
from ..core.exceptions import RepositoryException
from ..models.call import BLOCKING_CALL_STATUSES, Call, CallStatus
from .base_repository import BaseRepository

_LONGEST_CALL = timedelta(minutes=max(CALL_DURATIONS))


class CallRepository(BaseRepository[Call]):
    def __init__(self, db: Session):
        super().__init__(db, Call)

    def get_by_stripe_session_id(self, stripe_session_id: str) -> Optional[Call]:
        return self.find_one_by(stripe_session_id=stripe_session_id)

    def get_blocking_calls(self, mentor_id: str, range_start: datetime, range_end: datetime) -> List[Call]:
        """
        REQUESTED/CONFIRMED calls that may intersect ``[range_start, range_end)``.

        The start-time window is widened by the longest call duration; callers
        apply the exact overlap test.
        """
        query = (
            self._build_query()
            .filter(
                Call.mentor_id == mentor_id,
                Call.status.in_(BLOCKING_CALL_STATUSES),
                Call.scheduled_at >= range_start - _LONGEST_CALL,
                Call.scheduled_at < range_end,
            )
            .order_by(Call.scheduled_at)
        )
        return self._execute_query(query)

    def get_day_reminder_candidates(self, window_start: datetime, window_end: datetime) -> List[Call]:
        query = self._build_query().filter(
            Call.status == CallStatus.CONFIRMED.value,
            Call.scheduled_at >= window_start,
            Call.scheduled_at <= window_end,
            Call.day_reminder_sent_at.is_(None),
        )
        return self._execute_query(query.order_by(Call.scheduled_at))

    def get_hour_reminder_candidates(self, window_start: datetime, window_end: datetime) -> List[Call]:
        query = self._build_query().filter(
            Call.status == CallStatus.CONFIRMED.value,
            Call.scheduled_at >= window_start,
            Call.scheduled_at <= window_end,
            Call.hour_reminder_sent_at.is_(None),
        )
        return self._execute_query(query.order_by(Call.scheduled_at))

    def compare_and_set_status(self, call_id: str, expected: str, new_status: str, **values: Any) -> bool:
        """
        Move a call from ``expected`` to ``new_status`` in one UPDATE.

        Returns False when the row is no longer in ``expected`` (another
        request won); the caller treats that as a stale transition.
        """
        try:
            result = self.db.execute(
                update(Call)
                .where(Call.id == call_id, Call.status == expected)
                .values(status=new_status, **values)
                .execution_options(synchronize_session=False)
            )
            self.db.flush()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to update call %s status: %s", call_id, exc)
            raise RepositoryException(f"Failed to update call status: {exc}") from exc
        return bool(result.rowcount)
