"""Injectable clock so time-window logic can run against a fixed 'now'."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

from .timezone_utils import ensure_utc


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock pinned to an instant; advance it explicitly."""

    def __init__(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta: float) -> datetime:
        self._instant = self._instant + timedelta(**delta)
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)


system_clock = SystemClock()
