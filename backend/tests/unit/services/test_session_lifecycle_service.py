"""Time-driven lifecycle passes: minimum attendance, reminders, auto-completion."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe

from mentorship.core.pass_lease import PassLease
from mentorship.integrations.daily_client import DailyError
from mentorship.models.call import CallStatus
from mentorship.models.group_session import GroupSessionStatus, ParticipantStatus
from mentorship.models.payment import Payment, PaymentStatus, PaymentType
from mentorship.services.session_lifecycle_service import (
    MINIMUM_NOT_MET_REASON,
    ROOM_UNAVAILABLE_REASON,
    SessionLifecycleService,
)
from tests.factories.builders import create_call, create_group_session, create_mentor, create_user, register

UTC = timezone.utc
ROOM = "https://fake.daily.co/call-group-room"


@pytest.fixture
def service(unit_db, clock, notifier, video_service, stripe_service):
    return SessionLifecycleService(
        unit_db,
        clock=clock,
        notification_service=notifier,
        video_service=video_service,
        stripe_service=stripe_service,
    )


@pytest.fixture
def mentor(unit_db):
    return create_mentor(unit_db)


def _users(unit_db, count):
    return [create_user(unit_db) for _ in range(count)]


class TestMinimumCheck:
    def test_confirms_session_that_met_minimum(self, service, unit_db, mentor, notifier, fake_daily, clock):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 30, tzinfo=UTC))
        register(unit_db, session, _users(unit_db, 3))

        result = service.run_minimum_check()

        assert result == {"confirmed": 1, "cancelled": 0, "errors": []}
        assert session.status == GroupSessionStatus.CONFIRMED.value
        assert session.video_room_url == f"https://fake.daily.co/call-group-{session.id}"
        assert session.minimum_check_at == clock.now()
        assert fake_daily.calls[0]["max_participants"] == session.capacity + 1
        # Three participants and the host.
        assert notifier.send_group_session_confirmed.call_count == 4
        host_calls = [c for c in notifier.send_group_session_confirmed.call_args_list if c.kwargs["is_host"]]
        assert len(host_calls) == 1

    def test_cancels_and_refunds_below_minimum(self, service, unit_db, mentor, mock_refund, notifier):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 30, tzinfo=UTC))
        participants = register(unit_db, session, _users(unit_db, 2))

        result = service.run_minimum_check()

        assert result["cancelled"] == 1
        assert result["errors"] == []
        assert session.status == GroupSessionStatus.CANCELLED.value
        assert session.cancellation_reason == MINIMUM_NOT_MET_REASON
        assert session.minimum_check_at is not None
        assert {p.status for p in participants} == {ParticipantStatus.REFUNDED.value}
        assert mock_refund.call_count == 2
        assert notifier.send_group_session_cancelled.call_count == 3

    def test_refund_failure_is_reported(self, service, unit_db, mentor, mock_refund):
        mock_refund.side_effect = stripe.StripeError("refund declined")
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 30, tzinfo=UTC))
        (participant,) = register(unit_db, session, _users(unit_db, 1))

        result = service.run_minimum_check()

        assert result["cancelled"] == 1
        assert len(result["errors"]) == 1
        assert participant.id in result["errors"][0]
        assert participant.status == ParticipantStatus.CANCELLED.value

    def test_rerun_does_nothing(self, service, unit_db, mentor, mock_refund):
        confirmed = create_group_session(
            unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 30, tzinfo=UTC)
        )
        register(unit_db, confirmed, _users(unit_db, 3))
        cancelled = create_group_session(
            unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 45, tzinfo=UTC)
        )
        service.run_minimum_check()

        assert service.run_minimum_check() == {"confirmed": 0, "cancelled": 0, "errors": []}
        assert cancelled.status == GroupSessionStatus.CANCELLED.value

    def test_room_failure_leaves_session_for_next_run(self, service, unit_db, mentor, fake_daily, clock):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 55, tzinfo=UTC))
        register(unit_db, session, _users(unit_db, 3))
        fake_daily.set_error("create_room", DailyError("rate limited", 429))

        first = service.run_minimum_check()

        assert first["confirmed"] == 0
        assert "video room provisioning failed" in first["errors"][0]
        assert session.status == GroupSessionStatus.SCHEDULED.value
        assert session.minimum_check_at is None

        fake_daily.clear_errors()
        clock.advance(minutes=5)
        second = service.run_minimum_check()

        assert second["confirmed"] == 1
        assert session.status == GroupSessionStatus.CONFIRMED.value

    def test_sessions_beyond_window_untouched(self, service, unit_db, mentor):
        later = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 17, 0, tzinfo=UTC))

        assert service.run_minimum_check() == {"confirmed": 0, "cancelled": 0, "errors": []}
        assert later.status == GroupSessionStatus.SCHEDULED.value

    def test_below_threshold_of_four_is_cancelled_with_every_seat_refunded(
        self, service, unit_db, mentor, mock_refund, notifier, clock
    ):
        session = create_group_session(
            unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 15, 30, tzinfo=UTC), min_attendees=4
        )
        participants = register(unit_db, session, _users(unit_db, 3))

        result = service.run_minimum_check()

        assert result == {"confirmed": 0, "cancelled": 1, "errors": []}
        assert session.status == GroupSessionStatus.CANCELLED.value
        assert session.minimum_check_at == clock.now()
        assert mock_refund.call_count == 3
        assert {p.status for p in participants} == {ParticipantStatus.REFUNDED.value}
        # Three participants and the mentor.
        assert notifier.send_group_session_cancelled.call_count == 4

    def test_room_that_never_comes_up_ends_in_cancellation(
        self, service, unit_db, mentor, fake_daily, clock, mock_refund
    ):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 16, 0, tzinfo=UTC))
        participants = register(unit_db, session, _users(unit_db, 3))
        fake_daily.set_error("create_room", DailyError("service unavailable", 503))

        for _ in range(24):
            service.run_all()
            clock.advance(minutes=5)
        assert clock.now() == datetime(2026, 6, 1, 14, 0, tzinfo=UTC)

        assert session.status == GroupSessionStatus.CANCELLED.value
        assert session.cancellation_reason == ROOM_UNAVAILABLE_REASON
        assert session.minimum_check_at is not None
        assert mock_refund.call_count == 3
        assert {p.status for p in participants} == {ParticipantStatus.REFUNDED.value}

        clock.advance(hours=5)
        assert service.run_all()["minimum_checks"] == {"confirmed": 0, "cancelled": 0, "errors": []}

    def test_overdue_session_is_confirmed_when_room_recovers(self, service, unit_db, mentor, fake_daily):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 14, 30, tzinfo=UTC))
        register(unit_db, session, _users(unit_db, 3))

        result = service.run_minimum_check()

        assert result == {"confirmed": 1, "cancelled": 0, "errors": []}
        assert session.status == GroupSessionStatus.CONFIRMED.value
        assert session.video_room_url == f"https://fake.daily.co/call-group-{session.id}"

    def test_overdue_session_below_minimum_is_cancelled(self, service, unit_db, mentor, mock_refund):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 14, 30, tzinfo=UTC))

        result = service.run_minimum_check()

        assert result["cancelled"] == 1
        assert session.status == GroupSessionStatus.CANCELLED.value
        assert session.cancellation_reason == MINIMUM_NOT_MET_REASON

    def test_started_session_is_never_confirmed_late(self, service, unit_db, mentor, fake_daily, mock_refund):
        session = create_group_session(unit_db, mentor=mentor, scheduled_at=datetime(2026, 6, 1, 11, 45, tzinfo=UTC))
        register(unit_db, session, _users(unit_db, 3))

        result = service.run_minimum_check()

        assert result["cancelled"] == 1
        assert fake_daily.calls == []
        assert session.status == GroupSessionStatus.CANCELLED.value
        assert session.cancellation_reason == ROOM_UNAVAILABLE_REASON


class TestGroupReminders:
    def test_day_reminder_sent_once(self, service, unit_db, mentor, notifier, clock):
        session = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 2, 12, 30, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        register(unit_db, session, _users(unit_db, 2))

        first = service.run_group_reminders()
        second = service.run_group_reminders()

        assert first == {"day": 1, "hour": 0, "errors": []}
        assert second == {"day": 0, "hour": 0, "errors": []}
        assert session.day_reminder_sent_at == clock.now()
        assert notifier.send_group_session_reminder.call_count == 3
        assert {c.kwargs["time_until"] for c in notifier.send_group_session_reminder.call_args_list} == {"tomorrow"}

    def test_hour_reminder(self, service, unit_db, mentor, notifier):
        session = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 13, 0, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        register(unit_db, session, _users(unit_db, 1))

        assert service.run_group_reminders() == {"day": 0, "hour": 1, "errors": []}
        assert session.hour_reminder_sent_at is not None
        assert notifier.send_group_session_reminder.call_args.kwargs["time_until"] == "in 1 hour"

    def test_session_without_room_is_not_reminded(self, service, unit_db, mentor, notifier):
        create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 2, 12, 30, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
        )
        assert service.run_group_reminders()["day"] == 0
        notifier.send_group_session_reminder.assert_not_called()

    def test_notification_failure_leaves_marker_unset(self, service, unit_db, mentor, notifier):
        notifier.send_group_session_reminder.side_effect = RuntimeError("template missing")
        session = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 2, 12, 30, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )

        result = service.run_group_reminders()

        assert result["day"] == 0
        assert result["errors"] == [f"{session.id}: template missing"]
        assert session.day_reminder_sent_at is None


class TestCallReminders:
    def test_day_and_hour_reminders(self, service, unit_db, mentor, notifier):
        patient = create_user(unit_db)
        tomorrow = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=datetime(2026, 6, 2, 12, 0, tzinfo=UTC)
        )
        soon = create_call(
            unit_db,
            patient=patient,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 13, 0, tzinfo=UTC),
            duration_minutes=30,
        )

        result = service.run_call_reminders()

        assert result == {"day": 1, "hour": 1, "errors": []}
        assert tomorrow.day_reminder_sent_at is not None
        assert soon.hour_reminder_sent_at is not None
        assert notifier.send_call_reminder.call_count == 4
        assert service.run_call_reminders() == {"day": 0, "hour": 0, "errors": []}

    def test_unconfirmed_calls_are_skipped(self, service, unit_db, mentor, notifier):
        create_call(
            unit_db,
            patient=create_user(unit_db),
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 2, 12, 0, tzinfo=UTC),
            status=CallStatus.REQUESTED,
        )
        assert service.run_call_reminders()["day"] == 0
        notifier.send_call_reminder.assert_not_called()


class TestAutoCompletion:
    def _ended_session(self, unit_db, mentor, attendees=3):
        session = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 10, 0, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        participants = register(unit_db, session, _users(unit_db, attendees))
        return session, participants

    def test_completes_and_pays_mentor(self, service, unit_db, mentor, mock_transfer, clock):
        session, participants = self._ended_session(unit_db, mentor)

        result = service.run_auto_completion()

        assert result == {"count": 1, "errors": []}
        assert session.status == GroupSessionStatus.COMPLETED.value
        assert session.completed_at == clock.now()
        assert {p.status for p in participants} == {ParticipantStatus.ATTENDED.value}
        # 3 x $20 gross, 75% to the mentor.
        assert mock_transfer.call_args.kwargs["amount"] == 4500
        assert mock_transfer.call_args.kwargs["transfer_group"] == f"group_session_{session.id}"
        payout = unit_db.query(Payment).filter_by(type=PaymentType.MENTOR_PAYOUT.value).one()
        assert payout.related_entity_id == session.id
        assert service.run_auto_completion() == {"count": 0, "errors": []}

    def test_grace_period(self, service, unit_db, mentor):
        session = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 10, 45, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        assert service.run_auto_completion()["count"] == 0
        assert session.status == GroupSessionStatus.CONFIRMED.value

    def test_payout_failure_keeps_completion(self, service, unit_db, mentor, mock_transfer):
        mock_transfer.side_effect = stripe.StripeError("payouts paused")
        session, _ = self._ended_session(unit_db, mentor)

        result = service.run_auto_completion()

        assert result["count"] == 1
        assert result["errors"] == [f"{session.id}: payout failed: payouts paused"]
        assert session.status == GroupSessionStatus.COMPLETED.value
        payout = unit_db.query(Payment).filter_by(type=PaymentType.MENTOR_PAYOUT.value).one()
        assert payout.status == PaymentStatus.FAILED.value

    def test_no_paid_attendees_skips_transfer(self, service, unit_db, mentor, mock_transfer):
        session = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 10, 0, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        register(unit_db, session, _users(unit_db, 2), amount_paid=Decimal("0"))

        assert service.run_auto_completion() == {"count": 1, "errors": []}
        mock_transfer.assert_not_called()


class TestRunAll:
    def test_summary_shape(self, service, unit_db, mentor, clock):
        summary = service.run_all()
        assert summary["minimum_checks"] == {"confirmed": 0, "cancelled": 0, "errors": []}
        assert summary["reminders"] == {"day": 0, "hour": 0, "errors": []}
        assert summary["call_reminders"] == {"day": 0, "hour": 0, "errors": []}
        assert summary["completed"] == {"count": 0, "errors": []}
        assert summary["skipped_passes"] == []
        assert summary["errors"] == []
        assert summary["timestamp"] == clock.now().isoformat()

    def test_pass_with_held_lease_is_skipped(self, service, unit_db, mentor):
        ended = create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 10, 0, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        with patch.object(
            PassLease, "acquire", autospec=True, side_effect=lambda lease: lease.pass_name != "auto_completion"
        ):
            summary = service.run_all()

        assert summary["skipped_passes"] == ["auto_completion"]
        assert ended.status == GroupSessionStatus.CONFIRMED.value

    def test_failing_pass_does_not_stop_the_others(self, service, unit_db, mentor, mock_transfer):
        create_group_session(
            unit_db,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 1, 10, 0, tzinfo=UTC),
            status=GroupSessionStatus.CONFIRMED,
            video_room_url=ROOM,
        )
        with patch.object(service, "run_group_reminders", side_effect=RuntimeError("smtp down")):
            summary = service.run_all()

        assert summary["reminders"]["errors"] == ["group_reminders: smtp down"]
        assert "group_reminders: smtp down" in summary["errors"]
        assert summary["completed"]["count"] == 1
