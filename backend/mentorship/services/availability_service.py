# backend/mentorship/services/availability_service.py
"""
Availability Service for the mentorship platform.

Manages a mentor's recurring weekly windows and one-off blocked dates.
Windows are kept as local wall-clock strings; the overlap rule is checked
against the other windows of the same mentor and day before anything is
written.
"""

from datetime import date, datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.constants import DEFAULT_TIMEZONE
from ..core.exceptions import (
    AvailabilityOverlapException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import is_valid_timezone, local_today
from ..domain.intervals import WeeklyWindow, find_overlapping_window
from ..models.availability import AvailabilityWindow, BlockedDate
from ..repositories.base_repository import integrity_violation
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db)
        self.clock = clock or system_clock
        self.window_repository = RepositoryFactory.create_availability_window_repository(db)
        self.blocked_repository = RepositoryFactory.create_blocked_date_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def _mentor_timezone(self, mentor_id: str) -> str:
        profile = self.user_repository.get_mentor_profile(mentor_id)
        if profile is None:
            raise NotFoundException("Mentor not found", details={"mentor_id": mentor_id})
        return profile.timezone or DEFAULT_TIMEZONE

    @BaseService.measure_operation("add_window")
    def add_window(
        self,
        mentor_id: str,
        *,
        day_of_week: int,
        start_time: str,
        end_time: str,
        timezone: Optional[str] = None,
    ) -> AvailabilityWindow:
        """
        Add a recurring weekly window.

        Raises:
            ValidationException: bad day, bad HH:MM, or start not before end
            AvailabilityOverlapException: overlaps another window on the same day
        """
        tz_name = timezone or self._mentor_timezone(mentor_id)
        if timezone is not None and not is_valid_timezone(timezone):
            raise ValidationException(f"Unknown time zone '{timezone}'")

        try:
            candidate = WeeklyWindow.from_strings(day_of_week, start_time, end_time, tz_name)
        except ValueError as exc:
            raise ValidationException(str(exc)) from exc

        existing = [
            WeeklyWindow.from_strings(w.day_of_week, w.start_time, w.end_time, w.timezone)
            for w in self.window_repository.list_for_mentor_day(mentor_id, day_of_week)
        ]
        clash = find_overlapping_window(candidate, existing)
        if clash is not None:
            raise AvailabilityOverlapException(day_of_week, candidate.label(), clash.label())

        with self.transaction():
            window = self.window_repository.create(
                mentor_id=mentor_id,
                day_of_week=candidate.day_of_week,
                start_time=candidate.start.strftime("%H:%M"),
                end_time=candidate.end.strftime("%H:%M"),
                timezone=tz_name,
            )

        self.log_operation("add_window", mentor_id=mentor_id, window_id=window.id)
        return window

    @BaseService.measure_operation("remove_window")
    def remove_window(self, mentor_id: str, window_id: str) -> None:
        window = self.window_repository.get_by_id(window_id)
        if window is None or window.mentor_id != mentor_id:
            raise NotFoundException("Availability window not found")
        with self.transaction():
            self.window_repository.delete(window_id)

    def list_windows(self, mentor_id: str) -> List[AvailabilityWindow]:
        return self.window_repository.list_for_mentor(mentor_id)

    @BaseService.measure_operation("block_date")
    def block_date(self, mentor_id: str, blocked_date: date, reason: Optional[str] = None) -> BlockedDate:
        """Block a whole local date. Blocking an already-blocked date returns the existing row."""
        existing = self.blocked_repository.get_for_date(mentor_id, blocked_date)
        if existing is not None:
            return existing

        with self.transaction():
            try:
                blocked = self.blocked_repository.create(
                    mentor_id=mentor_id, blocked_date=blocked_date, reason=reason
                )
            except RepositoryException as exc:
                if not integrity_violation(exc):
                    raise
                raced = self.blocked_repository.get_for_date(mentor_id, blocked_date)
                if raced is None:
                    raise
                blocked = raced
        return blocked

    @BaseService.measure_operation("unblock_date")
    def unblock_date(self, mentor_id: str, blocked_date: date) -> bool:
        existing = self.blocked_repository.get_for_date(mentor_id, blocked_date)
        if existing is None:
            return False
        with self.transaction():
            self.blocked_repository.delete(existing.id)
        return True

    def list_blocked_dates(self, mentor_id: str, *, now: Optional[datetime] = None) -> List[BlockedDate]:
        """Blocked dates from today (mentor's zone) onward."""
        today = local_today(now or self.clock.now(), self._mentor_timezone(mentor_id))
        return self.blocked_repository.list_for_mentor(mentor_id, start_date=today)
