# backend/mentorship/repositories/group_session_repository.py
"""Data access for group sessions and their participants."""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from ..core.constants import GROUP_SESSION_DURATIONS
from ..models.group_session import (
    BLOCKING_SESSION_STATUSES,
    GroupSession,
    GroupSessionParticipant,
    GroupSessionStatus,
    ParticipantStatus,
)
from .base_repository import BaseRepository

_LONGEST_SESSION = timedelta(minutes=max(GROUP_SESSION_DURATIONS))


class GroupSessionRepository(BaseRepository[GroupSession]):
    def __init__(self, db: Session):
        super().__init__(db, GroupSession)

    def _with_participants(self):
        return self._build_query().options(selectinload(GroupSession.participants))

    def get_with_participants(self, session_id: str) -> Optional[GroupSession]:
        return self._with_participants().filter(GroupSession.id == session_id).first()

    def get_blocking_sessions(
        self, mentor_id: str, range_start: datetime, range_end: datetime
    ) -> List[GroupSession]:
        """SCHEDULED/CONFIRMED sessions that may intersect the range (exact overlap left to callers)."""
        query = (
            self._build_query()
            .filter(
                GroupSession.mentor_id == mentor_id,
                GroupSession.status.in_(BLOCKING_SESSION_STATUSES),
                GroupSession.scheduled_at >= range_start - _LONGEST_SESSION,
                GroupSession.scheduled_at < range_end,
            )
            .order_by(GroupSession.scheduled_at)
        )
        return self._execute_query(query)

    def get_minimum_check_candidates(self, window_start: datetime, window_end: datetime) -> List[GroupSession]:
        query = self._with_participants().filter(
            GroupSession.status == GroupSessionStatus.SCHEDULED.value,
            GroupSession.minimum_check_at.is_(None),
            GroupSession.scheduled_at >= window_start,
            GroupSession.scheduled_at <= window_end,
        )
        return self._execute_query(query.order_by(GroupSession.scheduled_at))

    def get_overdue_minimum_checks(self, before: datetime) -> List[GroupSession]:
        """SCHEDULED sessions that slipped past the minimum-check window unmarked."""
        query = self._with_participants().filter(
            GroupSession.status == GroupSessionStatus.SCHEDULED.value,
            GroupSession.minimum_check_at.is_(None),
            GroupSession.scheduled_at < before,
        )
        return self._execute_query(query.order_by(GroupSession.scheduled_at))

    def get_day_reminder_candidates(self, window_start: datetime, window_end: datetime) -> List[GroupSession]:
        query = self._with_participants().filter(
            GroupSession.status == GroupSessionStatus.CONFIRMED.value,
            GroupSession.video_room_url.isnot(None),
            GroupSession.day_reminder_sent_at.is_(None),
            GroupSession.scheduled_at >= window_start,
            GroupSession.scheduled_at <= window_end,
        )
        return self._execute_query(query.order_by(GroupSession.scheduled_at))

    def get_hour_reminder_candidates(self, window_start: datetime, window_end: datetime) -> List[GroupSession]:
        query = self._with_participants().filter(
            GroupSession.status == GroupSessionStatus.CONFIRMED.value,
            GroupSession.video_room_url.isnot(None),
            GroupSession.hour_reminder_sent_at.is_(None),
            GroupSession.scheduled_at >= window_start,
            GroupSession.scheduled_at <= window_end,
        )
        return self._execute_query(query.order_by(GroupSession.scheduled_at))

    def get_confirmed_sessions(self) -> List[GroupSession]:
        query = self._with_participants().filter(GroupSession.status == GroupSessionStatus.CONFIRMED.value)
        return self._execute_query(query.order_by(GroupSession.scheduled_at))


class GroupSessionParticipantRepository(BaseRepository[GroupSessionParticipant]):
    def __init__(self, db: Session):
        super().__init__(db, GroupSessionParticipant)

    def get_for_user(self, session_id: str, user_id: str) -> Optional[GroupSessionParticipant]:
        return self.find_one_by(session_id=session_id, user_id=user_id)

    def count_registered(self, session_id: str) -> int:
        return self.count(session_id=session_id, status=ParticipantStatus.REGISTERED.value)
