"""
SlotService: bookable slots for a mentor over a rolling horizon.

For every date after "today" (in the mentor's zone) up to the horizon, the
mentor's weekly windows are expanded at a fixed granularity, converted to UTC
and dropped when they overlap a booked interval, start in the past, or fall
inside the minimum lead time. Read-only.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.constants import (
    BOOKING_HORIZON_DAYS,
    CALL_DURATIONS,
    DEFAULT_TIMEZONE,
    GROUP_SESSION_DURATIONS,
    MIN_ADVANCE_BOOKING_HOURS,
    SLOT_GRANULARITY_MINUTES,
)
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import ensure_utc, local_to_utc, local_today
from ..domain.intervals import Interval, WeeklyWindow, enumerate_start_minutes, overlaps_any
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .conflict_checker import BookedInterval, ConflictChecker

# purpose -> (allowed durations, minimum lead time in hours)
SLOT_PURPOSES: Dict[str, Tuple[Tuple[int, ...], int]] = {
    "call": (CALL_DURATIONS, 0),
    "group_session": (GROUP_SESSION_DURATIONS, MIN_ADVANCE_BOOKING_HOURS),
}


def durations_label(durations: Tuple[int, ...]) -> str:
    labels = [str(d) for d in durations]
    if len(labels) == 1:
        return labels[0]
    return ", ".join(labels[:-1]) + " or " + labels[-1]


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    local_date: date
    local_start: str

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "local_start": self.local_start,
        }


@dataclass
class SlotAvailability:
    mentor_id: str
    timezone: str
    duration_minutes: int
    days: Dict[date, List[Slot]] = field(default_factory=dict)
    booked: List[BookedInterval] = field(default_factory=list)
    blocked_dates: List[date] = field(default_factory=list)

    @property
    def slots(self) -> List[Slot]:
        return [slot for day in sorted(self.days) for slot in self.days[day]]


class SlotService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db)
        self.clock = clock or system_clock
        self.window_repository = RepositoryFactory.create_availability_window_repository(db)
        self.blocked_repository = RepositoryFactory.create_blocked_date_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.conflict_checker = ConflictChecker(db)

    def mentor_timezone(self, mentor_id: str) -> str:
        profile = self.user_repository.get_mentor_profile(mentor_id)
        if profile is None:
            raise NotFoundException("Mentor not found", details={"mentor_id": mentor_id})
        return profile.timezone or DEFAULT_TIMEZONE

    @BaseService.measure_operation("generate_slots")
    def generate_slots(
        self,
        mentor_id: str,
        duration_minutes: int,
        *,
        now: Optional[datetime] = None,
        horizon_days: int = BOOKING_HORIZON_DAYS,
        purpose: str = "call",
    ) -> SlotAvailability:
        """
        Slots for a 1:1 call (``purpose="call"``) or a new group session
        (``purpose="group_session"``, which also enforces the advance-booking lead time).
        """
        if purpose not in SLOT_PURPOSES:
            raise ValidationException(f"Unknown slot purpose '{purpose}'")
        allowed_durations, min_lead_hours = SLOT_PURPOSES[purpose]
        if duration_minutes not in allowed_durations:
            raise ValidationException(
                f"Duration must be {durations_label(allowed_durations)} minutes",
                details={"duration_minutes": duration_minutes, "purpose": purpose},
            )
        now = ensure_utc(now or self.clock.now())
        tz_name = self.mentor_timezone(mentor_id)
        earliest_start = now + timedelta(hours=min_lead_hours)

        today = local_today(now, tz_name)
        dates = [today + timedelta(days=offset) for offset in range(1, horizon_days + 1)]

        windows = [
            WeeklyWindow.from_strings(w.day_of_week, w.start_time, w.end_time, w.timezone or tz_name)
            for w in self.window_repository.list_for_mentor(mentor_id)
        ]
        blocked = {
            b.blocked_date
            for b in self.blocked_repository.list_for_mentor(mentor_id, start_date=dates[0], end_date=dates[-1])
        }

        # Windows may be declared in a zone other than the mentor's; pad the range by a day.
        range_start = local_to_utc(dates[0], time.min, tz_name) - timedelta(days=1)
        range_end = local_to_utc(dates[-1], time.min, tz_name) + timedelta(days=2)
        booked = self.conflict_checker.get_booked_intervals(mentor_id, range_start, range_end)
        booked_intervals = [b.interval for b in booked]

        result = SlotAvailability(
            mentor_id=mentor_id,
            timezone=tz_name,
            duration_minutes=duration_minutes,
            booked=booked,
            blocked_dates=sorted(blocked),
        )

        for day in dates:
            if day in blocked:
                continue
            seen: Dict[datetime, Slot] = {}
            for window in windows:
                if not window.applies_to(day):
                    continue
                for minute in enumerate_start_minutes(
                    window.start_minutes, window.end_minutes, duration_minutes, SLOT_GRANULARITY_MINUTES
                ):
                    start = local_to_utc(day, time(minute // 60, minute % 60), window.timezone)
                    candidate = Interval.from_start(start, duration_minutes)
                    if candidate.start < earliest_start:
                        continue
                    if overlaps_any(candidate, booked_intervals):
                        continue
                    seen.setdefault(
                        candidate.start,
                        Slot(
                            start=candidate.start,
                            end=candidate.end,
                            local_date=day,
                            local_start=f"{minute // 60:02d}:{minute % 60:02d}",
                        ),
                    )
            if seen:
                result.days[day] = [seen[key] for key in sorted(seen)]

        return result
