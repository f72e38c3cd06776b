"""
Timezone utilities for the mentorship platform.

Availability is declared in the mentor's local wall-clock time; bookings are
stored as UTC instants. These helpers convert between the two.
"""

from datetime import date, datetime, time

import pytz

from .constants import DEFAULT_TIMEZONE


def is_valid_timezone(name: str | None) -> bool:
    return bool(name) and name in pytz.all_timezones_set


def get_timezone(name: str | None) -> pytz.BaseTzInfo:
    """Resolve a time zone name, falling back to the platform default."""
    try:
        return pytz.timezone(name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(DEFAULT_TIMEZONE)


def ensure_utc(dt: datetime) -> datetime:
    """
    Return an aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite drops tzinfo).
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def local_to_utc(day: date, wall_clock: time, tz_name: str | None) -> datetime:
    """
    Convert a local wall-clock time on a given date to a UTC instant.

    Uses pytz ``localize`` so DST offsets are taken from that specific date.
    """
    tz = get_timezone(tz_name)
    local_dt = tz.localize(datetime.combine(day, wall_clock))
    return local_dt.astimezone(pytz.UTC)


def utc_to_local(dt: datetime, tz_name: str | None) -> datetime:
    return ensure_utc(dt).astimezone(get_timezone(tz_name))


def local_today(now: datetime, tz_name: str | None) -> date:
    """Today's date in the given zone, relative to an injected 'now'."""
    return utc_to_local(now, tz_name).date()
