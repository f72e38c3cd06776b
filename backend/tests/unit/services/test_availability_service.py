"""AvailabilityService: weekly windows and blocked dates."""

from datetime import date, datetime, timezone

import pytest

from mentorship.core.exceptions import AvailabilityOverlapException, NotFoundException, ValidationException
from mentorship.services.availability_service import AvailabilityService
from tests.factories.builders import block_date, create_mentor


@pytest.fixture
def mentor(unit_db):
    return create_mentor(unit_db, timezone="America/Chicago")


@pytest.fixture
def service(unit_db, clock):
    return AvailabilityService(unit_db, clock)


class TestWindows:
    def test_add_window_defaults_to_mentor_timezone(self, service, mentor):
        window = service.add_window(mentor.id, day_of_week=2, start_time="09:00", end_time="12:00")
        assert window.id
        assert window.timezone == "America/Chicago"
        assert [w.id for w in service.list_windows(mentor.id)] == [window.id]

    def test_touching_windows_are_allowed(self, service, mentor):
        service.add_window(mentor.id, day_of_week=2, start_time="09:00", end_time="12:00")
        service.add_window(mentor.id, day_of_week=2, start_time="12:00", end_time="15:00")
        assert len(service.list_windows(mentor.id)) == 2

    def test_overlapping_window_rejected(self, service, mentor):
        service.add_window(mentor.id, day_of_week=2, start_time="09:00", end_time="12:00")
        with pytest.raises(AvailabilityOverlapException) as exc_info:
            service.add_window(mentor.id, day_of_week=2, start_time="11:00", end_time="13:00")
        assert exc_info.value.details["conflicting_window"] == "09:00-12:00"
        assert len(service.list_windows(mentor.id)) == 1

    def test_same_hours_on_another_day_is_fine(self, service, mentor):
        service.add_window(mentor.id, day_of_week=2, start_time="09:00", end_time="12:00")
        service.add_window(mentor.id, day_of_week=3, start_time="09:00", end_time="12:00")
        assert len(service.list_windows(mentor.id)) == 2

    @pytest.mark.parametrize(
        "day,start,end",
        [(7, "09:00", "10:00"), (-1, "09:00", "10:00"), (2, "10:00", "09:00"), (2, "9am", "10:00")],
    )
    def test_invalid_windows(self, service, mentor, day, start, end):
        with pytest.raises(ValidationException):
            service.add_window(mentor.id, day_of_week=day, start_time=start, end_time=end)

    def test_unknown_timezone(self, service, mentor):
        with pytest.raises(ValidationException):
            service.add_window(mentor.id, day_of_week=2, start_time="09:00", end_time="10:00", timezone="Mars/Olympus")

    def test_remove_window_checks_owner(self, service, mentor, unit_db):
        window = service.add_window(mentor.id, day_of_week=2, start_time="09:00", end_time="12:00")
        other = create_mentor(unit_db)
        with pytest.raises(NotFoundException):
            service.remove_window(other.id, window.id)
        service.remove_window(mentor.id, window.id)
        assert service.list_windows(mentor.id) == []

    def test_unknown_mentor(self, service):
        with pytest.raises(NotFoundException):
            service.add_window("01J0000000000000000000000Z", day_of_week=2, start_time="09:00", end_time="12:00")


class TestBlockedDates:
    def test_block_date_is_idempotent(self, service, mentor):
        first = service.block_date(mentor.id, date(2026, 6, 10), reason="Follow-up appointment")
        second = service.block_date(mentor.id, date(2026, 6, 10))
        assert first.id == second.id

    def test_list_blocked_dates_from_today(self, service, mentor, unit_db):
        block_date(unit_db, mentor, date(2026, 5, 20))
        service.block_date(mentor.id, date(2026, 6, 1))
        service.block_date(mentor.id, date(2026, 6, 10))
        listed = [b.blocked_date for b in service.list_blocked_dates(mentor.id)]
        assert listed == [date(2026, 6, 1), date(2026, 6, 10)]

    def test_today_is_local_to_mentor(self, service, mentor):
        service.block_date(mentor.id, date(2026, 6, 1))
        # 03:00 UTC on June 2 is still June 1 in Chicago.
        now = datetime(2026, 6, 2, 3, 0, tzinfo=timezone.utc)
        assert [b.blocked_date for b in service.list_blocked_dates(mentor.id, now=now)] == [date(2026, 6, 1)]

    def test_unblock(self, service, mentor):
        service.block_date(mentor.id, date(2026, 6, 10))
        assert service.unblock_date(mentor.id, date(2026, 6, 10)) is True
        assert service.unblock_date(mentor.id, date(2026, 6, 10)) is False
