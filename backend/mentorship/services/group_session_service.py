# backend/mentorship/services/group_session_service.py
"""
Group Session Service for the mentorship platform.

Creation with policy validation and the mentor conflict check, participant
registration (reached from the payment webhook), participant self-cancel and
host cancel. Releasing a participant refunds a paid seat through Stripe; a
refund failure is logged and the seat still ends in a terminal status so the
session's own state change is never blocked.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import List, Optional

import stripe
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.constants import (
    DEFAULT_MIN_ATTENDEES,
    GROUP_SESSION_CANCEL_HOURS_BEFORE,
    GROUP_SESSION_DURATIONS,
    GROUP_SESSION_MAX_CAPACITY,
    GROUP_SESSION_MAX_PRICE,
    GROUP_SESSION_MIN_CAPACITY,
    GROUP_SESSION_MIN_PRICE,
    MIN_ADVANCE_BOOKING_HOURS,
    PROCEDURE_TYPES,
)
from ..core.exceptions import (
    BusinessRuleException,
    CapacityExceededException,
    ConflictException,
    ForbiddenException,
    InsufficientNoticeException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..domain.intervals import Interval
from ..models.group_session import (
    BLOCKING_SESSION_STATUSES,
    PAID_PARTICIPANT_STATUSES,
    GroupSession,
    GroupSessionParticipant,
    GroupSessionStatus,
    ParticipantStatus,
)
from ..models.payment import PaymentStatus, PaymentType
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .slot_service import durations_label
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

GROUP_SESSION_ENTITY = "group_session"
HOST_CANCEL_REASON = "The host cancelled this session"


@dataclass
class ReleaseOutcome:
    participant: GroupSessionParticipant
    refunded: bool
    error: Optional[str] = None


class GroupSessionService(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        stripe_service: Optional[StripeService] = None,
    ):
        super().__init__(db)
        self.clock = clock or system_clock
        self.repository = RepositoryFactory.create_group_session_repository(db)
        self.participant_repository = RepositoryFactory.create_participant_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.conflict_checker = ConflictChecker(db)
        self.notification_service = notification_service or NotificationService(db)
        self.stripe_service = stripe_service or StripeService(db)

    def get_session(self, session_id: str) -> GroupSession:
        session = self.repository.get_with_participants(session_id)
        if session is None:
            raise NotFoundException("Group session not found")
        return session

    # Creation

    def _validate_policy(
        self,
        *,
        title: str,
        procedure_type: str,
        duration_minutes: int,
        capacity: int,
        price_per_person: Decimal,
        min_attendees: int,
    ) -> None:
        if not (title or "").strip():
            raise ValidationException("Title is required")
        if procedure_type not in PROCEDURE_TYPES:
            raise ValidationException(
                f"Unknown procedure type '{procedure_type}'",
                details={"allowed": list(PROCEDURE_TYPES)},
            )
        if duration_minutes not in GROUP_SESSION_DURATIONS:
            raise ValidationException(
                f"Duration must be {durations_label(GROUP_SESSION_DURATIONS)} minutes",
                details={"duration_minutes": duration_minutes},
            )
        if not GROUP_SESSION_MIN_CAPACITY <= capacity <= GROUP_SESSION_MAX_CAPACITY:
            raise ValidationException(
                f"Capacity must be between {GROUP_SESSION_MIN_CAPACITY} and {GROUP_SESSION_MAX_CAPACITY}",
                details={"capacity": capacity},
            )
        if not GROUP_SESSION_MIN_PRICE <= price_per_person <= GROUP_SESSION_MAX_PRICE:
            raise ValidationException(
                f"Price must be between ${GROUP_SESSION_MIN_PRICE} and ${GROUP_SESSION_MAX_PRICE}",
                details={"price_per_person": str(price_per_person)},
            )
        if not 1 <= min_attendees <= capacity:
            raise ValidationException(
                "Minimum attendees must be between 1 and the session capacity",
                details={"min_attendees": min_attendees, "capacity": capacity},
            )

    @BaseService.measure_operation("create_group_session")
    def create_session(
        self,
        mentor_id: str,
        *,
        title: str,
        procedure_type: str,
        scheduled_at: datetime,
        duration_minutes: int,
        capacity: int,
        price_per_person: Decimal,
        min_attendees: Optional[int] = None,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GroupSession:
        """
        Create a SCHEDULED group session.

        Raises:
            ValidationException: policy bounds (duration, capacity, price, procedure)
            InsufficientNoticeException: less than 24 hours out
            BookingConflictException: within the conflict buffer of another booking
        """
        now = ensure_utc(now or self.clock.now())
        price = Decimal(str(price_per_person))
        if min_attendees is None:
            min_attendees = min(DEFAULT_MIN_ATTENDEES, capacity)
        self._validate_policy(
            title=title,
            procedure_type=procedure_type,
            duration_minutes=duration_minutes,
            capacity=capacity,
            price_per_person=price,
            min_attendees=min_attendees,
        )

        start = ensure_utc(scheduled_at)
        notice_hours = (start - now).total_seconds() / 3600
        if notice_hours < MIN_ADVANCE_BOOKING_HOURS:
            raise InsufficientNoticeException(MIN_ADVANCE_BOOKING_HOURS, notice_hours)

        if self.user_repository.get_mentor_profile(mentor_id) is None:
            raise NotFoundException("Mentor not found", details={"mentor_id": mentor_id})

        proposed = Interval.from_start(start, duration_minutes)
        with self.transaction():
            self.conflict_checker.ensure_group_session_slot_free(mentor_id, proposed)
            session = self.repository.create(
                mentor_id=mentor_id,
                title=title.strip(),
                description=description,
                procedure_type=procedure_type,
                scheduled_at=start,
                duration_minutes=duration_minutes,
                capacity=capacity,
                min_attendees=min_attendees,
                price_per_person=price,
                status=GroupSessionStatus.SCHEDULED.value,
            )

        self.log_operation("create_group_session", session_id=session.id, mentor_id=mentor_id)
        return session

    # Registration

    def register_participant(
        self,
        session_id: str,
        user_id: str,
        *,
        amount_paid: Decimal,
        stripe_payment_intent_id: Optional[str] = None,
    ) -> GroupSessionParticipant:
        """
        Register a paid seat. Runs inside the caller's unit of work; does not commit.

        Re-registering an active seat returns it unchanged; a previously
        cancelled or refunded seat is reactivated.

        Raises:
            NotFoundException: unknown session
            ConflictException: session is no longer open
            CapacityExceededException: all seats taken
        """
        session = self.get_session(session_id)
        if session.status not in BLOCKING_SESSION_STATUSES:
            raise ConflictException(
                "This session is no longer accepting registrations",
                details={"session_id": session_id, "status": session.status},
            )

        existing = self.participant_repository.get_for_user(session_id, user_id)
        if existing is not None and existing.status in PAID_PARTICIPANT_STATUSES:
            return existing

        if self.participant_repository.count_registered(session_id) >= session.capacity:
            raise CapacityExceededException(session_id, session.capacity)

        if existing is not None:
            existing.status = ParticipantStatus.REGISTERED.value
            existing.amount_paid = amount_paid
            existing.stripe_payment_intent_id = stripe_payment_intent_id
            existing.cancelled_at = None
            self.participant_repository.flush()
            return existing

        return self.participant_repository.create(
            session_id=session_id,
            user_id=user_id,
            amount_paid=amount_paid,
            stripe_payment_intent_id=stripe_payment_intent_id,
            status=ParticipantStatus.REGISTERED.value,
        )

    def refund_payment_intent(self, payment_intent_id: Optional[str], *, idempotency_key: str) -> Optional[str]:
        """Best-effort refund; returns the refund id or None on failure."""
        if not payment_intent_id:
            return None
        try:
            return self.stripe_service.create_refund(
                payment_intent_id=payment_intent_id,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            self.logger.error(
                "Refund failed",
                extra={"payment_intent_id": payment_intent_id, "operation": "refund", "error": str(exc)},
            )
            return None

    def release_participant(
        self, participant: GroupSessionParticipant, session: GroupSession, *, now: datetime
    ) -> ReleaseOutcome:
        """
        Refund a paid seat and move it to REFUNDED; unpaid seats become CANCELLED.

        A paid seat whose refund fails also becomes CANCELLED and the failure is
        reported in the outcome for manual reconciliation. Does not commit.
        """
        refund_id: Optional[str] = None
        error: Optional[str] = None
        if participant.is_paid:
            if not participant.stripe_payment_intent_id:
                error = "No payment reference to refund"
            else:
                try:
                    refund_id = self.stripe_service.create_refund(
                        payment_intent_id=participant.stripe_payment_intent_id,
                        idempotency_key=f"refund:participant:{participant.id}",
                        metadata={"session_id": session.id, "participant_id": participant.id},
                    )
                except stripe.StripeError as exc:
                    error = str(exc.user_message or exc)

        participant.status = ParticipantStatus.REFUNDED.value if refund_id else ParticipantStatus.CANCELLED.value
        participant.cancelled_at = now

        if refund_id:
            purchase = self.payment_repository.get_purchase_for_entity(
                user_id=participant.user_id,
                entity_type=GROUP_SESSION_ENTITY,
                entity_id=session.id,
                payment_type=PaymentType.GROUP_SESSION_PAYMENT,
            )
            if purchase is not None:
                purchase.status = PaymentStatus.REFUNDED.value
                purchase.stripe_refund_id = refund_id
        self.participant_repository.flush()

        if error:
            self.logger.error(
                "Participant refund failed",
                extra={
                    "session_id": session.id,
                    "participant_id": participant.id,
                    "operation": "refund",
                    "error": error,
                },
            )
        return ReleaseOutcome(participant=participant, refunded=bool(refund_id), error=error)

    def release_all(self, session: GroupSession, *, now: datetime) -> List[ReleaseOutcome]:
        """Release every REGISTERED seat, committing each one independently."""
        outcomes: List[ReleaseOutcome] = []
        for participant in list(session.registered_participants):
            try:
                outcomes.append(self.release_participant(participant, session, now=now))
                self.db.commit()
            except Exception as exc:
                self.db.rollback()
                self.logger.error(
                    "Failed to release participant",
                    extra={
                        "session_id": session.id,
                        "participant_id": participant.id,
                        "operation": "release",
                        "error": str(exc),
                    },
                )
                outcomes.append(ReleaseOutcome(participant=participant, refunded=False, error=str(exc)))
        return outcomes

    def notify_cancelled(self, session: GroupSession, outcomes: List[ReleaseOutcome], *, reason: str) -> None:
        for outcome in outcomes:
            user = outcome.participant.user
            if user is not None:
                self.notification_service.send_group_session_cancelled(
                    user, session, reason=reason, refunded=outcome.refunded
                )
        mentor = self.user_repository.get_by_id(session.mentor_id)
        if mentor is not None:
            self.notification_service.send_group_session_cancelled(mentor, session, reason=reason)

    # Cancellation

    @BaseService.measure_operation("cancel_registration")
    def cancel_registration(
        self, session_id: str, user_id: str, *, now: Optional[datetime] = None
    ) -> ReleaseOutcome:
        """
        Participant self-cancel, allowed until 4 hours before the start.

        Raises:
            NotFoundException: no active registration
            BusinessRuleException: inside the cutoff or the session is closed
        """
        now = ensure_utc(now or self.clock.now())
        session = self.get_session(session_id)
        participant = self.participant_repository.get_for_user(session_id, user_id)
        if participant is None or participant.status != ParticipantStatus.REGISTERED.value:
            raise NotFoundException("Registration not found")
        if session.status not in BLOCKING_SESSION_STATUSES:
            raise BusinessRuleException(f"Session is already {session.status.lower()}")
        if session.starts_at - now < timedelta(hours=GROUP_SESSION_CANCEL_HOURS_BEFORE):
            raise BusinessRuleException(
                f"Registrations can only be cancelled at least {GROUP_SESSION_CANCEL_HOURS_BEFORE} "
                "hours before the session"
            )

        with self.transaction():
            outcome = self.release_participant(participant, session, now=now)
        self.log_operation(
            "cancel_registration",
            session_id=session_id,
            participant_id=participant.id,
            refunded=outcome.refunded,
        )
        return outcome

    @BaseService.measure_operation("host_cancel_group_session")
    def host_cancel(
        self,
        session_id: str,
        *,
        actor_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GroupSession:
        """
        Host cancels a SCHEDULED or CONFIRMED session; every registered seat is released.

        Raises:
            ForbiddenException: actor is not the host
            InvalidStatusTransitionException: session already terminal
        """
        now = ensure_utc(now or self.clock.now())
        session = self.get_session(session_id)
        if session.mentor_id != actor_id:
            raise ForbiddenException("Only the host can cancel this session")
        if session.status not in BLOCKING_SESSION_STATUSES:
            raise InvalidStatusTransitionException(
                "group session", session.status, GroupSessionStatus.CANCELLED.value
            )

        reason = reason or HOST_CANCEL_REASON
        self.cancel_and_release(session, reason=reason, now=now)
        return session

    def cancel_and_release(self, session: GroupSession, *, reason: str, now: datetime) -> List[ReleaseOutcome]:
        """Commit the cancellation first, then release seats and notify."""
        with self.transaction():
            session.status = GroupSessionStatus.CANCELLED.value
            session.cancellation_reason = reason
            session.cancelled_at = now
        outcomes = self.release_all(session, now=now)
        self.notify_cancelled(session, outcomes, reason=reason)
        self.log_operation(
            "cancel_group_session",
            session_id=session.id,
            released=len(outcomes),
            refund_failures=sum(1 for o in outcomes if o.error),
        )
        return outcomes
