"""Tests for the weekly-window and UTC interval helpers."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from mentorship.domain.intervals import (
    Interval,
    WeeklyWindow,
    day_of_week_index,
    enumerate_start_minutes,
    find_overlapping_window,
    parse_hhmm,
    window_contains,
)

UTC = timezone.utc


class TestParseHHMM:
    def test_parses_valid_times(self):
        assert parse_hhmm("09:00") == time(9, 0)
        assert parse_hhmm("23:59") == time(23, 59)

    @pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "noon", ""])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)


class TestInterval:
    def test_half_open_intervals_touching_do_not_overlap(self):
        first = Interval(datetime(2026, 6, 2, 13, tzinfo=UTC), datetime(2026, 6, 2, 14, tzinfo=UTC))
        second = Interval(datetime(2026, 6, 2, 14, tzinfo=UTC), datetime(2026, 6, 2, 15, tzinfo=UTC))
        assert not first.overlaps(second)
        assert not second.overlaps(first)

    def test_overlap_detected(self):
        first = Interval.from_start(datetime(2026, 6, 2, 13, tzinfo=UTC), 60)
        second = Interval.from_start(datetime(2026, 6, 2, 13, 30, tzinfo=UTC), 30)
        assert first.overlaps(second)

    def test_naive_values_are_treated_as_utc(self):
        interval = Interval.from_start(datetime(2026, 6, 2, 13), 30)
        assert interval.start.tzinfo is not None
        assert interval.end - interval.start == timedelta(minutes=30)

    def test_end_must_follow_start(self):
        start = datetime(2026, 6, 2, 13, tzinfo=UTC)
        with pytest.raises(ValueError):
            Interval(start, start)

    def test_widen_pads_both_sides(self):
        interval = Interval.from_start(datetime(2026, 6, 2, 13, tzinfo=UTC), 60)
        padded = interval.widen(before=timedelta(hours=2), after=timedelta(hours=2))
        assert padded.start == datetime(2026, 6, 2, 11, tzinfo=UTC)
        assert padded.end == datetime(2026, 6, 2, 16, tzinfo=UTC)


class TestWeeklyWindow:
    def test_sunday_is_day_zero(self):
        assert day_of_week_index(date(2026, 6, 7)) == 0  # Sunday
        assert day_of_week_index(date(2026, 6, 1)) == 1  # Monday
        assert day_of_week_index(date(2026, 6, 6)) == 6  # Saturday

    def test_start_must_precede_end(self):
        with pytest.raises(ValueError):
            WeeklyWindow.from_strings(1, "12:00", "12:00", "America/New_York")

    def test_day_out_of_range(self):
        with pytest.raises(ValueError):
            WeeklyWindow.from_strings(7, "09:00", "12:00", "America/New_York")

    def test_touching_windows_do_not_overlap(self):
        morning = WeeklyWindow.from_strings(2, "09:00", "12:00", "America/New_York")
        afternoon = WeeklyWindow.from_strings(2, "12:00", "15:00", "America/New_York")
        assert not morning.overlaps(afternoon)

    def test_overlapping_windows_same_day(self):
        morning = WeeklyWindow.from_strings(2, "09:00", "12:00", "America/New_York")
        late_morning = WeeklyWindow.from_strings(2, "11:00", "13:00", "America/New_York")
        other_day = WeeklyWindow.from_strings(3, "11:00", "13:00", "America/New_York")
        assert find_overlapping_window(late_morning, [other_day, morning]) is morning
        assert find_overlapping_window(other_day, [morning]) is None

    def test_on_date_uses_dst_offset_for_that_date(self):
        window = WeeklyWindow.from_strings(2, "09:00", "12:00", "America/New_York")
        summer = window.on_date(date(2026, 6, 2))
        winter = window.on_date(date(2026, 12, 1))
        assert summer.start == datetime(2026, 6, 2, 13, tzinfo=UTC)
        assert winter.start == datetime(2026, 12, 1, 14, tzinfo=UTC)

    def test_window_contains_requires_full_fit(self):
        window = WeeklyWindow.from_strings(2, "09:00", "12:00", "America/New_York")
        day = date(2026, 6, 2)
        inside = Interval.from_start(datetime(2026, 6, 2, 15, 30, tzinfo=UTC), 30)
        spills = Interval.from_start(datetime(2026, 6, 2, 15, 30, tzinfo=UTC), 60)
        assert window_contains(window, day, inside)
        assert not window_contains(window, day, spills)
        assert not window_contains(window, date(2026, 6, 3), inside)


class TestEnumerateStartMinutes:
    def test_last_start_leaves_room_for_duration(self):
        starts = list(enumerate_start_minutes(9 * 60, 12 * 60, 30, 15))
        assert starts[0] == 9 * 60
        assert starts[-1] == 11 * 60 + 30
        assert len(starts) == 11

    def test_duration_longer_than_window(self):
        assert list(enumerate_start_minutes(9 * 60, 9 * 60 + 30, 60, 15)) == []

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            list(enumerate_start_minutes(0, 60, 30, 0))
