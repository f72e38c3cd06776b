"""Interval model: recurring weekly windows and concrete UTC intervals.

Pure functions with no database or network access. Days of the week use the
0 = Sunday ... 6 = Saturday convention stored on AvailabilityWindow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import re
from typing import Iterable, Iterator, Optional, Sequence

from ..core.timezone_utils import ensure_utc, local_to_utc

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string. Raises ValueError on malformed input."""
    match = HHMM_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week_index(day: date) -> int:
    """Python weekday (Mon=0) to the stored convention (Sun=0)."""
    return (day.weekday() + 1) % 7


@dataclass(frozen=True)
class Interval:
    """Half-open UTC interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.end <= self.start:
            raise ValueError("Interval end must be after start")

    @classmethod
    def from_start(cls, start: datetime, duration_minutes: int) -> "Interval":
        return cls(start, ensure_utc(start) + timedelta(minutes=duration_minutes))

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and self.end > other.start

    def widen(self, *, before: timedelta = timedelta(0), after: timedelta = timedelta(0)) -> "Interval":
        return Interval(self.start - before, self.end + after)

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class WeeklyWindow:
    """A recurring local wall-clock window on one day of the week."""

    day_of_week: int
    start: time
    end: time
    timezone: str

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValueError("day_of_week must be between 0 and 6")
        if minutes_of_day(self.start) >= minutes_of_day(self.end):
            raise ValueError("Window start must be before end")

    @classmethod
    def from_strings(cls, day_of_week: int, start: str, end: str, timezone: str) -> "WeeklyWindow":
        return cls(day_of_week, parse_hhmm(start), parse_hhmm(end), timezone)

    @property
    def start_minutes(self) -> int:
        return minutes_of_day(self.start)

    @property
    def end_minutes(self) -> int:
        return minutes_of_day(self.end)

    def label(self) -> str:
        return f"{format_minutes(self.start_minutes)}-{format_minutes(self.end_minutes)}"

    def overlaps(self, other: "WeeklyWindow") -> bool:
        """Same-day windows overlap when their minute ranges intersect (touching is fine)."""
        if self.day_of_week != other.day_of_week:
            return False
        return self.start_minutes < other.end_minutes and self.end_minutes > other.start_minutes

    def applies_to(self, day: date) -> bool:
        return day_of_week_index(day) == self.day_of_week

    def on_date(self, day: date) -> Interval:
        """The concrete UTC interval this window covers on ``day``."""
        return Interval(
            local_to_utc(day, self.start, self.timezone),
            local_to_utc(day, self.end, self.timezone),
        )


def find_overlapping_window(candidate: WeeklyWindow, existing: Iterable[WeeklyWindow]) -> Optional[WeeklyWindow]:
    for window in existing:
        if candidate.overlaps(window):
            return window
    return None


def enumerate_start_minutes(
    window_start: int, window_end: int, duration_minutes: int, granularity_minutes: int
) -> Iterator[int]:
    """Offsets (minutes of day) stepping by granularity with ``offset + duration <= window_end``."""
    if duration_minutes <= 0 or granularity_minutes <= 0:
        raise ValueError("duration and granularity must be positive")
    minute = window_start
    while minute + duration_minutes <= window_end:
        yield minute
        minute += granularity_minutes


def overlaps_any(interval: Interval, others: Sequence[Interval]) -> bool:
    return any(interval.overlaps(other) for other in others)


def window_contains(window: WeeklyWindow, day: date, interval: Interval) -> bool:
    return window.applies_to(day) and window.on_date(day).contains(interval)
