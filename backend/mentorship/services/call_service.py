# backend/mentorship/services/call_service.py
"""
Call Service for the mentorship platform.

One-on-one calls are created two ways: a manual request that waits for the
mentor (REQUESTED), or the post-payment path that confirms immediately. Status
changes follow ALLOWED_CALL_TRANSITIONS and are applied with a compare-and-set
on the status column, so two racing requests cannot both win.

Side effects (room provisioning, refunds, payouts, email) run after the
status change is committed and never undo it.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Optional, Tuple

import stripe
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.constants import (
    CALL_DURATIONS,
    CALL_REFUND_CUTOFF_HOURS,
    DEFAULT_TIMEZONE,
    MAX_CALL_RATE,
    MIN_CALL_RATE,
)
from ..core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_to_local
from ..domain.intervals import Interval, WeeklyWindow, window_contains
from ..models.call import Call, CallStatus, can_transition
from ..models.payment import PaymentStatus, PaymentType
from ..models.user import MentorProfile, User
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .payout_service import CENT, PayoutService, split_revenue
from .slot_service import durations_label
from .stripe_service import StripeService
from .video_service import VideoRoomService

logger = logging.getLogger(__name__)

CALL_ENTITY = "call"
MENTOR_ONLY_STATUSES = frozenset({CallStatus.CONFIRMED, CallStatus.COMPLETED, CallStatus.NO_SHOW})


def compute_call_price(hourly_rate: Decimal, duration_minutes: int) -> Decimal:
    """A 60-minute call costs the hourly rate; a 30-minute call costs half."""
    price = Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60)
    return price.quantize(CENT, rounding=ROUND_HALF_UP)


class CallService(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        video_service: Optional[VideoRoomService] = None,
        stripe_service: Optional[StripeService] = None,
        payout_service: Optional[PayoutService] = None,
    ):
        super().__init__(db)
        self.clock = clock or system_clock
        self.repository = RepositoryFactory.create_call_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.window_repository = RepositoryFactory.create_availability_window_repository(db)
        self.blocked_repository = RepositoryFactory.create_blocked_date_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.conflict_checker = ConflictChecker(db)
        self.notification_service = notification_service or NotificationService(db)
        self.video_service = video_service or VideoRoomService()
        self.stripe_service = stripe_service or StripeService(db)
        self.payout_service = payout_service or PayoutService(db, stripe_service=self.stripe_service)

    # Validation helpers

    def _get_mentor_profile(self, mentor_id: str) -> MentorProfile:
        profile = self.user_repository.get_mentor_profile(mentor_id)
        if profile is None:
            raise NotFoundException("Mentor not found", details={"mentor_id": mentor_id})
        return profile

    def _validate_call_time(
        self, profile: MentorProfile, scheduled_at: datetime, duration_minutes: int, now: datetime
    ) -> Interval:
        if duration_minutes not in CALL_DURATIONS:
            raise ValidationException(
                f"Duration must be {durations_label(CALL_DURATIONS)} minutes",
                details={"duration_minutes": duration_minutes},
            )
        proposed = Interval.from_start(scheduled_at, duration_minutes)
        if proposed.start <= now:
            raise ValidationException("Calls must be scheduled in the future")

        mentor_tz = profile.timezone or DEFAULT_TIMEZONE
        local_date = utc_to_local(proposed.start, mentor_tz).date()
        if self.blocked_repository.get_for_date(profile.user_id, local_date) is not None:
            raise ValidationException(
                "The mentor is unavailable on this date",
                details={"date": local_date.isoformat()},
            )

        for row in self.window_repository.list_for_mentor(profile.user_id):
            window = WeeklyWindow.from_strings(row.day_of_week, row.start_time, row.end_time, row.timezone or mentor_tz)
            window_day = utc_to_local(proposed.start, window.timezone).date()
            if window_contains(window, window_day, proposed):
                return proposed
        raise ValidationException("Requested time is outside the mentor's available hours")

    def _pricing(self, profile: MentorProfile, duration_minutes: int) -> Tuple[Decimal, Decimal, Decimal]:
        rate = Decimal(profile.hourly_rate)
        if not MIN_CALL_RATE <= rate <= MAX_CALL_RATE:
            raise BusinessRuleException(
                "This mentor's call rate is outside the bookable range",
                details={"hourly_rate": str(rate), "min_rate": MIN_CALL_RATE, "max_rate": MAX_CALL_RATE},
            )
        price = compute_call_price(rate, duration_minutes)
        mentor_payout, platform_fee = split_revenue(price)
        return price, platform_fee, mentor_payout

    def _provision_room(self, call: Call, now: datetime) -> Optional[str]:
        return self.video_service.try_provision(
            logical_id=call.id,
            scheduled_start=call.starts_at,
            duration_minutes=call.duration_minutes,
            max_participants=2,
            now=now,
        )

    # Creation

    @BaseService.measure_operation("request_call")
    def request_call(
        self,
        *,
        patient_id: str,
        mentor_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Call:
        """
        Manual booking: create a REQUESTED call awaiting the mentor.

        Raises:
            ValidationException: bad duration, past start, blocked date, outside windows
            BusinessRuleException: the mentor's hourly rate is outside the call rate bounds
            BookingConflictException: overlaps an existing call or group session
        """
        now = ensure_utc(now or self.clock.now())
        if patient_id == mentor_id:
            raise ValidationException("You cannot book a call with yourself")
        profile = self._get_mentor_profile(mentor_id)
        patient = self.user_repository.get_by_id(patient_id)
        if patient is None:
            raise NotFoundException("User not found")

        proposed = self._validate_call_time(profile, ensure_utc(scheduled_at), duration_minutes, now)
        price, platform_fee, mentor_payout = self._pricing(profile, duration_minutes)

        with self.transaction():
            self.conflict_checker.ensure_call_slot_free(mentor_id, proposed)
            call = self.repository.create(
                patient_id=patient_id,
                mentor_id=mentor_id,
                scheduled_at=proposed.start,
                duration_minutes=duration_minutes,
                price=price,
                platform_fee=platform_fee,
                mentor_payout=mentor_payout,
                status=CallStatus.REQUESTED.value,
                notes=notes,
            )

        self.notification_service.send_call_requested(profile.user, patient, call)
        self.log_operation("request_call", call_id=call.id, mentor_id=mentor_id)
        return call

    def create_paid_call(
        self,
        *,
        patient_id: str,
        mentor_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
        price: Decimal,
        stripe_session_id: Optional[str],
        stripe_payment_intent_id: Optional[str],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Call:
        """
        Post-payment path: the call is created CONFIRMED with a room when one
        can be provisioned. Runs inside the caller's unit of work and does not
        commit; a booking conflict at this point is logged, not raised,
        because the money has already moved.
        """
        now = ensure_utc(now or self.clock.now())
        if duration_minutes not in CALL_DURATIONS:
            raise ValidationException(
                f"Duration must be {durations_label(CALL_DURATIONS)} minutes",
                details={"duration_minutes": duration_minutes},
            )
        proposed = Interval.from_start(scheduled_at, duration_minutes)
        conflict = self.conflict_checker.find_conflict(mentor_id, proposed)
        if conflict is not None:
            self.logger.warning(
                "Paid call overlaps an existing booking",
                extra={"mentor_id": mentor_id, "stripe_session_id": stripe_session_id, **conflict.to_dict()},
            )

        mentor_payout, platform_fee = split_revenue(price)
        call = self.repository.create(
            patient_id=patient_id,
            mentor_id=mentor_id,
            scheduled_at=proposed.start,
            duration_minutes=duration_minutes,
            price=price,
            platform_fee=platform_fee,
            mentor_payout=mentor_payout,
            status=CallStatus.CONFIRMED.value,
            stripe_session_id=stripe_session_id,
            stripe_payment_intent_id=stripe_payment_intent_id,
            notes=notes,
            confirmed_at=now,
        )
        call.video_room_url = self._provision_room(call, now)
        self.repository.flush()
        return call

    def notify_call_confirmed(self, call: Call) -> None:
        patient = call.patient
        mentor = call.mentor
        self.notification_service.send_call_confirmed(patient, mentor, call)
        self.notification_service.send_call_confirmed(mentor, patient, call)

    # Status transitions

    @BaseService.measure_operation("transition_call_status")
    def transition_status(
        self,
        call_id: str,
        *,
        actor_id: str,
        new_status: str,
        now: Optional[datetime] = None,
    ) -> Call:
        """
        Move a call along the allowed-transition table.

        Raises:
            NotFoundException: unknown call
            ForbiddenException: actor is not a participant, or not the mentor
                for mentor-only statuses
            InvalidStatusTransitionException: transition not in the table, or the
                call changed status concurrently
        """
        now = ensure_utc(now or self.clock.now())
        call = self.repository.get_by_id(call_id)
        if call is None:
            raise NotFoundException("Call not found")
        if not call.is_participant(actor_id):
            raise ForbiddenException("You don't have permission to change this call")

        try:
            requested = CallStatus(new_status)
        except ValueError:
            raise ValidationException(f"Unknown call status '{new_status}'") from None
        if requested in MENTOR_ONLY_STATUSES and actor_id != call.mentor_id:
            raise ForbiddenException(f"Only the mentor can mark a call {requested.value}")

        current = call.status
        if not can_transition(current, requested.value):
            raise InvalidStatusTransitionException("call", current, requested.value)

        values: Dict[str, Any] = {}
        if requested == CallStatus.CONFIRMED:
            values["confirmed_at"] = now
        elif requested == CallStatus.COMPLETED:
            values["completed_at"] = now
        elif requested == CallStatus.CANCELLED:
            values.update(cancelled_at=now, cancelled_by_id=actor_id)

        with self.transaction():
            if not self.repository.compare_and_set_status(call.id, current, requested.value, **values):
                self.db.refresh(call)
                raise InvalidStatusTransitionException("call", call.status, requested.value)
        self.db.refresh(call)
        self.log_operation("transition_call_status", call_id=call.id, old=current, new=requested.value)

        if requested == CallStatus.CONFIRMED:
            self._after_confirmed(call, now)
        elif requested == CallStatus.CANCELLED:
            self._after_cancelled(call, actor_id, now)
        elif requested == CallStatus.COMPLETED:
            self._after_completed(call)
        return call

    def _after_confirmed(self, call: Call, now: datetime) -> None:
        if not call.video_room_url:
            room_url = self._provision_room(call, now)
            if room_url:
                with self.transaction():
                    call.video_room_url = room_url
        self.notify_call_confirmed(call)

    def _after_cancelled(self, call: Call, actor_id: str, now: datetime) -> None:
        refunded = False
        hours_before = (call.starts_at - now).total_seconds() / 3600
        if call.stripe_payment_intent_id and hours_before >= CALL_REFUND_CUTOFF_HOURS:
            refunded = self._refund_call(call)

        actor: Optional[User] = call.mentor if actor_id == call.mentor_id else call.patient
        recipient = call.patient if actor_id == call.mentor_id else call.mentor
        if actor is not None and recipient is not None:
            self.notification_service.send_call_cancelled(recipient, actor, call, refunded=refunded)

    def _refund_call(self, call: Call) -> bool:
        try:
            refund_id = self.stripe_service.create_refund(
                payment_intent_id=call.stripe_payment_intent_id,
                idempotency_key=f"refund:call:{call.id}",
                metadata={"call_id": call.id},
            )
        except stripe.StripeError as exc:
            self.logger.error(
                "Call refund failed",
                extra={"call_id": call.id, "operation": "refund", "error": str(exc)},
            )
            return False

        purchase = self.payment_repository.get_purchase_for_entity(
            user_id=call.patient_id,
            entity_type=CALL_ENTITY,
            entity_id=call.id,
            payment_type=PaymentType.CALL_PAYMENT,
        )
        if purchase is not None:
            with self.transaction():
                purchase.status = PaymentStatus.REFUNDED.value
                purchase.stripe_refund_id = refund_id
        return True

    def _after_completed(self, call: Call) -> None:
        try:
            self.payout_service.initiate_payout(
                mentor_id=call.mentor_id,
                amount=call.mentor_payout,
                source_type=CALL_ENTITY,
                source_id=call.id,
                transfer_group=f"call_{call.id}",
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            self.logger.error(
                "Call payout failed",
                extra={"call_id": call.id, "operation": "payout", "error": str(exc)},
            )
