"""CallService: manual requests, the transition table and post-transition effects."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import stripe

from mentorship.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    ForbiddenException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from mentorship.integrations.daily_client import DailyError
from mentorship.models.call import CallStatus
from mentorship.models.payment import Payment, PaymentStatus, PaymentType
from mentorship.services.call_service import CallService, compute_call_price
from mentorship.services.payout_service import PayoutService
from tests.factories.builders import add_window, block_date, create_call, create_mentor, create_user

UTC = timezone.utc
TUESDAY_10AM = datetime(2026, 6, 2, 14, 0, tzinfo=UTC)  # 10:00 in New York


@pytest.fixture
def mentor(unit_db):
    mentor = create_mentor(unit_db, hourly_rate=Decimal("60.00"))
    add_window(unit_db, mentor, day_of_week=2, start="09:00", end="12:00")
    return mentor


@pytest.fixture
def patient(unit_db):
    return create_user(unit_db)


@pytest.fixture
def service(unit_db, clock, notifier, video_service, stripe_service):
    return CallService(
        unit_db,
        clock=clock,
        notification_service=notifier,
        video_service=video_service,
        stripe_service=stripe_service,
        payout_service=PayoutService(unit_db, stripe_service=stripe_service),
    )


def test_price_is_prorated_from_hourly_rate():
    assert compute_call_price(Decimal("60.00"), 60) == Decimal("60.00")
    assert compute_call_price(Decimal("55.00"), 30) == Decimal("27.50")


class TestRequestCall:
    def test_creates_requested_call_with_split(self, service, mentor, patient, notifier):
        call = service.request_call(
            patient_id=patient.id,
            mentor_id=mentor.id,
            scheduled_at=TUESDAY_10AM,
            duration_minutes=60,
            notes="Two weeks post-op",
        )

        assert call.status == CallStatus.REQUESTED.value
        assert call.price == Decimal("60.00")
        assert call.mentor_payout == Decimal("45.00")
        assert call.platform_fee == Decimal("15.00")
        assert call.video_room_url is None
        notifier.send_call_requested.assert_called_once()

    def test_outside_mentor_hours(self, service, mentor, patient):
        with pytest.raises(ValidationException, match="available hours"):
            service.request_call(
                patient_id=patient.id,
                mentor_id=mentor.id,
                scheduled_at=datetime(2026, 6, 2, 15, 30, tzinfo=UTC),  # 11:30-12:30 local
                duration_minutes=60,
            )

    def test_mentor_rate_outside_bounds(self, service, patient, unit_db):
        pricey = create_mentor(unit_db, hourly_rate=Decimal("120.00"))
        add_window(unit_db, pricey, day_of_week=2, start="09:00", end="12:00")
        with pytest.raises(BusinessRuleException):
            service.request_call(
                patient_id=patient.id,
                mentor_id=pricey.id,
                scheduled_at=TUESDAY_10AM,
                duration_minutes=30,
            )

    def test_in_the_past(self, service, mentor, patient):
        with pytest.raises(ValidationException):
            service.request_call(
                patient_id=patient.id,
                mentor_id=mentor.id,
                scheduled_at=datetime(2026, 5, 26, 14, 0, tzinfo=UTC),
                duration_minutes=30,
            )

    def test_unsupported_duration(self, service, mentor, patient):
        with pytest.raises(ValidationException):
            service.request_call(
                patient_id=patient.id, mentor_id=mentor.id, scheduled_at=TUESDAY_10AM, duration_minutes=45
            )

    def test_blocked_date(self, service, mentor, patient, unit_db):
        block_date(unit_db, mentor, datetime(2026, 6, 2).date())
        with pytest.raises(ValidationException, match="unavailable"):
            service.request_call(
                patient_id=patient.id, mentor_id=mentor.id, scheduled_at=TUESDAY_10AM, duration_minutes=30
            )

    def test_conflict_with_existing_call(self, service, mentor, patient, unit_db):
        create_call(unit_db, patient=create_user(unit_db), mentor=mentor, scheduled_at=TUESDAY_10AM)
        with pytest.raises(BookingConflictException):
            service.request_call(
                patient_id=patient.id,
                mentor_id=mentor.id,
                scheduled_at=datetime(2026, 6, 2, 14, 30, tzinfo=UTC),
                duration_minutes=30,
            )

    def test_cannot_book_yourself(self, service, mentor):
        with pytest.raises(ValidationException):
            service.request_call(
                patient_id=mentor.id, mentor_id=mentor.id, scheduled_at=TUESDAY_10AM, duration_minutes=30
            )

    def test_unknown_mentor(self, service, patient):
        with pytest.raises(NotFoundException):
            service.request_call(
                patient_id=patient.id,
                mentor_id="01J0000000000000000000000Z",
                scheduled_at=TUESDAY_10AM,
                duration_minutes=30,
            )


class TestTransitions:
    def test_mentor_confirms_and_room_is_provisioned(self, service, mentor, patient, unit_db, fake_daily, notifier):
        call = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM, status=CallStatus.REQUESTED
        )

        updated = service.transition_status(call.id, actor_id=mentor.id, new_status="CONFIRMED")

        assert updated.status == CallStatus.CONFIRMED.value
        assert updated.confirmed_at is not None
        assert updated.video_room_url == f"https://fake.daily.co/call-{call.id}"
        assert fake_daily.calls[0]["max_participants"] == 2
        assert notifier.send_call_confirmed.call_count == 2

    def test_confirm_survives_room_failure(self, service, mentor, patient, unit_db, fake_daily):
        fake_daily.set_error("create_room", DailyError("boom", 500))
        call = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM, status=CallStatus.REQUESTED
        )

        updated = service.transition_status(call.id, actor_id=mentor.id, new_status="CONFIRMED")

        assert updated.status == CallStatus.CONFIRMED.value
        assert updated.video_room_url is None

    def test_patient_cannot_confirm(self, service, mentor, patient, unit_db):
        call = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM, status=CallStatus.REQUESTED
        )
        with pytest.raises(ForbiddenException):
            service.transition_status(call.id, actor_id=patient.id, new_status="CONFIRMED")

    def test_outsider_cannot_touch_call(self, service, mentor, patient, unit_db):
        call = create_call(unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM)
        with pytest.raises(ForbiddenException):
            service.transition_status(call.id, actor_id=create_user(unit_db).id, new_status="CANCELLED")

    def test_terminal_status_cannot_change(self, service, mentor, patient, unit_db):
        call = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM, status=CallStatus.COMPLETED
        )
        with pytest.raises(InvalidStatusTransitionException):
            service.transition_status(call.id, actor_id=mentor.id, new_status="CANCELLED")

    def test_requested_cannot_complete(self, service, mentor, patient, unit_db):
        call = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM, status=CallStatus.REQUESTED
        )
        with pytest.raises(InvalidStatusTransitionException):
            service.transition_status(call.id, actor_id=mentor.id, new_status="COMPLETED")

    def test_unknown_status_value(self, service, mentor, patient, unit_db):
        call = create_call(unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM)
        with pytest.raises(ValidationException):
            service.transition_status(call.id, actor_id=mentor.id, new_status="RESCHEDULED")

    def test_cancel_a_day_out_refunds(self, service, mentor, patient, unit_db, mock_refund, notifier):
        call = create_call(
            unit_db,
            patient=patient,
            mentor=mentor,
            scheduled_at=TUESDAY_10AM,
            stripe_payment_intent_id="pi_call_1",
        )
        purchase = Payment(
            user_id=patient.id,
            type=PaymentType.CALL_PAYMENT.value,
            status=PaymentStatus.COMPLETED.value,
            amount=Decimal("60.00"),
            related_entity_type="call",
            related_entity_id=call.id,
        )
        unit_db.add(purchase)
        unit_db.flush()

        updated = service.transition_status(call.id, actor_id=patient.id, new_status="CANCELLED")

        assert updated.status == CallStatus.CANCELLED.value
        assert updated.cancelled_by_id == patient.id
        mock_refund.assert_called_once()
        assert mock_refund.call_args.kwargs["payment_intent"] == "pi_call_1"
        assert mock_refund.call_args.kwargs["idempotency_key"] == f"refund:call:{call.id}"
        unit_db.refresh(purchase)
        assert purchase.status == PaymentStatus.REFUNDED.value
        assert purchase.stripe_refund_id == "re_test_123"
        notifier.send_call_cancelled.assert_called_once()
        assert notifier.send_call_cancelled.call_args.kwargs["refunded"] is True

    def test_late_cancel_is_not_refunded(self, service, mentor, patient, unit_db, mock_refund):
        call = create_call(
            unit_db,
            patient=patient,
            mentor=mentor,
            scheduled_at=datetime(2026, 6, 2, 11, 0, tzinfo=UTC),
            stripe_payment_intent_id="pi_call_2",
        )
        service.transition_status(call.id, actor_id=patient.id, new_status="CANCELLED")
        mock_refund.assert_not_called()

    def test_refund_failure_keeps_cancellation(self, service, mentor, patient, unit_db, mock_refund, notifier):
        mock_refund.side_effect = stripe.StripeError("card issuer unavailable")
        call = create_call(
            unit_db,
            patient=patient,
            mentor=mentor,
            scheduled_at=TUESDAY_10AM,
            stripe_payment_intent_id="pi_call_3",
        )

        updated = service.transition_status(call.id, actor_id=mentor.id, new_status="CANCELLED")

        assert updated.status == CallStatus.CANCELLED.value
        assert notifier.send_call_cancelled.call_args.kwargs["refunded"] is False

    def test_complete_pays_mentor(self, service, mentor, patient, unit_db, mock_transfer):
        call = create_call(unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM)

        updated = service.transition_status(call.id, actor_id=mentor.id, new_status="COMPLETED")

        assert updated.status == CallStatus.COMPLETED.value
        mock_transfer.assert_called_once()
        assert mock_transfer.call_args.kwargs["amount"] == 4500
        payout = unit_db.query(Payment).filter_by(type=PaymentType.MENTOR_PAYOUT.value).one()
        assert payout.status == PaymentStatus.COMPLETED.value
        assert payout.related_entity_id == call.id

    def test_failed_payout_does_not_undo_completion(self, service, mentor, patient, unit_db, mock_transfer):
        mock_transfer.side_effect = stripe.StripeError("insufficient funds")
        call = create_call(unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM)

        updated = service.transition_status(call.id, actor_id=mentor.id, new_status="COMPLETED")

        assert updated.status == CallStatus.COMPLETED.value
        payout = unit_db.query(Payment).filter_by(type=PaymentType.MENTOR_PAYOUT.value).one()
        assert payout.status == PaymentStatus.FAILED.value
        assert payout.stripe_transfer_id is None

    def test_stale_transition_loses(self, service, mentor, patient, unit_db):
        call = create_call(
            unit_db, patient=patient, mentor=mentor, scheduled_at=TUESDAY_10AM, status=CallStatus.REQUESTED
        )
        # Another request cancels it first.
        service.repository.compare_and_set_status(call.id, "REQUESTED", "CANCELLED")
        with pytest.raises(InvalidStatusTransitionException):
            service.transition_status(call.id, actor_id=mentor.id, new_status="CONFIRMED")
