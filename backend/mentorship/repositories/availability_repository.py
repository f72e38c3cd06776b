# backend/mentorship/repositories/availability_repository.py
"""Data access for recurring availability windows and blocked dates."""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.availability import AvailabilityWindow, BlockedDate
from .base_repository import BaseRepository


class AvailabilityWindowRepository(BaseRepository[AvailabilityWindow]):
    def __init__(self, db: Session):
        super().__init__(db, AvailabilityWindow)

    def list_for_mentor(self, mentor_id: str) -> List[AvailabilityWindow]:
        query = (
            self._build_query()
            .filter(AvailabilityWindow.mentor_id == mentor_id)
            .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
        )
        return self._execute_query(query)

    def list_for_mentor_day(self, mentor_id: str, day_of_week: int) -> List[AvailabilityWindow]:
        query = (
            self._build_query()
            .filter(
                AvailabilityWindow.mentor_id == mentor_id,
                AvailabilityWindow.day_of_week == day_of_week,
            )
            .order_by(AvailabilityWindow.start_time)
        )
        return self._execute_query(query)


class BlockedDateRepository(BaseRepository[BlockedDate]):
    def __init__(self, db: Session):
        super().__init__(db, BlockedDate)

    def list_for_mentor(
        self,
        mentor_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[BlockedDate]:
        query = self._build_query().filter(BlockedDate.mentor_id == mentor_id)
        if start_date is not None:
            query = query.filter(BlockedDate.blocked_date >= start_date)
        if end_date is not None:
            query = query.filter(BlockedDate.blocked_date <= end_date)
        return self._execute_query(query.order_by(BlockedDate.blocked_date))

    def get_for_date(self, mentor_id: str, blocked_date: date) -> Optional[BlockedDate]:
        return self.find_one_by(mentor_id=mentor_id, blocked_date=blocked_date)
