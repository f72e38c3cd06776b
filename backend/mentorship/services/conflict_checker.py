"""
ConflictChecker: the mentor's booked intervals and overlap checks.

A booked interval is derived from REQUESTED/CONFIRMED calls and
SCHEDULED/CONFIRMED group sessions; nothing is stored separately.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import CONFLICT_BUFFER_HOURS
from ..core.exceptions import BookingConflictException
from ..domain.intervals import Interval
from ..repositories.factory import RepositoryFactory
from .base import BaseService


@dataclass(frozen=True)
class BookedInterval:
    kind: str  # call | group_session
    entity_id: str
    interval: Interval

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "id": self.entity_id,
            "start": self.interval.start.isoformat(),
            "end": self.interval.end.isoformat(),
        }


class ConflictChecker(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.call_repository = RepositoryFactory.create_call_repository(db)
        self.group_session_repository = RepositoryFactory.create_group_session_repository(db)

    def get_booked_intervals(self, mentor_id: str, range_start: datetime, range_end: datetime) -> List[BookedInterval]:
        """Booked intervals intersecting ``[range_start, range_end)``, ordered by start."""
        window = Interval(range_start, range_end)
        booked: List[BookedInterval] = []
        for call in self.call_repository.get_blocking_calls(mentor_id, window.start, window.end):
            booked.append(BookedInterval("call", call.id, Interval(call.starts_at, call.ends_at)))
        for session in self.group_session_repository.get_blocking_sessions(mentor_id, window.start, window.end):
            booked.append(BookedInterval("group_session", session.id, Interval(session.starts_at, session.ends_at)))
        booked = [b for b in booked if b.interval.overlaps(window)]
        booked.sort(key=lambda b: b.interval.start)
        return booked

    def find_conflict(
        self,
        mentor_id: str,
        proposed: Interval,
        *,
        buffer: timedelta = timedelta(0),
        exclude_id: Optional[str] = None,
    ) -> Optional[BookedInterval]:
        """First booked interval overlapping ``proposed`` widened by ``buffer`` on both sides."""
        padded = proposed.widen(before=buffer, after=buffer)
        for booked in self.get_booked_intervals(mentor_id, padded.start, padded.end):
            if booked.entity_id == exclude_id:
                continue
            if booked.interval.overlaps(padded):
                return booked
        return None

    def ensure_call_slot_free(self, mentor_id: str, proposed: Interval) -> None:
        conflict = self.find_conflict(mentor_id, proposed)
        if conflict is not None:
            raise BookingConflictException(details=conflict.to_dict())

    def ensure_group_session_slot_free(self, mentor_id: str, proposed: Interval) -> None:
        """Group sessions keep a setup/teardown buffer on both sides."""
        conflict = self.find_conflict(mentor_id, proposed, buffer=timedelta(hours=CONFLICT_BUFFER_HOURS))
        if conflict is not None:
            raise BookingConflictException(
                "This time conflicts with an existing call or group session",
                details={**conflict.to_dict(), "buffer_hours": CONFLICT_BUFFER_HOURS},
            )
