# backend/mentorship/services/payment_event_router.py
"""
Payment Event Router.

Consumes verified ``checkout.session.completed`` events and dispatches on the
``type`` tag in the checkout metadata:

    recording_purchase     -> purchase row + recording access + payout
    series_purchase        -> purchase row + series access + access per recording + payout
    call_payment           -> purchase row + CONFIRMED call with a video room
    group_session_payment  -> purchase row + REGISTERED participant

Every event is recorded in the webhook ledger first. The handler's own writes
commit together; payouts and email run afterwards, each in its own failure
boundary, so a failed transfer never takes back access that was paid for.

Idempotency is keyed on the Stripe event id twice over: the ledger row and the
unique ``payments.stripe_event_id`` column.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.constants import CALL_DURATIONS
from ..core.exceptions import (
    ConflictException,
    DomainException,
    RepositoryException,
    ServiceException,
    WebhookIntegrityException,
)
from ..core.timezone_utils import ensure_utc
from ..models.payment import Payment, PaymentStatus, PaymentType
from ..models.user import User
from ..models.webhook_event import WebhookEvent
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .call_service import CALL_ENTITY, CallService
from .group_session_service import GROUP_SESSION_ENTITY, GroupSessionService
from .notification_service import NotificationService
from .payout_service import PayoutService, split_revenue
from .stripe_service import StripeService, from_minor_units
from .video_service import VideoRoomService
from .webhook_ledger_service import WebhookLedgerService

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "stripe"
CHECKOUT_COMPLETED = "checkout.session.completed"

PURPOSE_RECORDING = "recording_purchase"
PURPOSE_SERIES = "series_purchase"
PURPOSE_CALL = "call_payment"
PURPOSE_GROUP_SESSION = "group_session_payment"


@dataclass
class RouteOutcome:
    status: str  # processed | duplicate | ignored
    purpose: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    payment: Optional[Payment] = None
    followups: List[Callable[[], None]] = field(default_factory=list)

    def to_dict(self, event_id: str) -> Dict[str, Any]:
        return {
            "status": self.status,
            "event_id": event_id,
            "purpose": self.purpose,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
        }


@dataclass(frozen=True)
class CheckoutContext:
    event_id: str
    checkout_session_id: Optional[str]
    payment_intent_id: Optional[str]
    amount: Decimal
    currency: str
    metadata: Mapping[str, str]

    def require(self, *keys: str) -> List[str]:
        missing = [key for key in keys if not self.metadata.get(key)]
        if missing:
            raise WebhookIntegrityException(
                "Checkout metadata is missing required fields",
                details={"missing": missing, "event_id": self.event_id},
            )
        return [str(self.metadata[key]).strip() for key in keys]


def parse_scheduled_at(value: str) -> datetime:
    """Parse an ISO-8601 instant from checkout metadata ("Z" suffix allowed)."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


class PaymentEventRouter(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        clock: Optional[Clock] = None,
        stripe_service: Optional[StripeService] = None,
        notification_service: Optional[NotificationService] = None,
        video_service: Optional[VideoRoomService] = None,
    ):
        super().__init__(db)
        self.clock = clock or system_clock
        self.stripe_service = stripe_service or StripeService(db)
        self.notification_service = notification_service or NotificationService(db)
        self.payout_service = PayoutService(db, stripe_service=self.stripe_service)
        self.ledger = WebhookLedgerService(db, clock=self.clock)
        self.call_service = CallService(
            db,
            clock=self.clock,
            notification_service=self.notification_service,
            video_service=video_service,
            stripe_service=self.stripe_service,
            payout_service=self.payout_service,
        )
        self.group_session_service = GroupSessionService(
            db,
            clock=self.clock,
            notification_service=self.notification_service,
            stripe_service=self.stripe_service,
        )
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.recording_repository = RepositoryFactory.create_recording_repository(db)
        self.series_repository = RepositoryFactory.create_series_repository(db)
        self.recording_access_repository = RepositoryFactory.create_recording_access_repository(db)
        self.series_access_repository = RepositoryFactory.create_series_access_repository(db)

        self._handlers: Dict[str, Callable[[CheckoutContext], RouteOutcome]] = {
            PURPOSE_RECORDING: self._handle_recording_purchase,
            PURPOSE_SERIES: self._handle_series_purchase,
            PURPOSE_CALL: self._handle_call_payment,
            PURPOSE_GROUP_SESSION: self._handle_group_session_payment,
        }

    # Entry points

    def handle_webhook(
        self, payload: bytes, signature: Optional[str], headers: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Verify the signature, then process. Unverified payloads never reach the ledger."""
        event = self.stripe_service.construct_event(payload, signature)
        return self.process_event(event, headers=headers)

    @BaseService.measure_operation("process_payment_event")
    def process_event(self, event: Dict[str, Any], *, headers: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Process a verified event exactly once.

        Raises:
            WebhookIntegrityException: required metadata missing or malformed
            ConflictException: the same event is being processed concurrently
            ServiceException: a handler failed; the event is left ``failed`` for retry
        """
        event_id = str(event["id"])
        event_type = str(event.get("type") or "unknown")

        with self.transaction():
            row = self.ledger.record_delivery(
                source=WEBHOOK_SOURCE,
                event_id=event_id,
                event_type=event_type,
                payload=event,
                headers=headers,
            )
        if row.is_settled:
            self.logger.info(
                "Redelivery of settled Stripe event %s (status=%s, retry_count=%s)",
                event_id,
                row.status,
                row.retry_count,
            )
            prometheus_metrics.record_webhook_event(row.purpose or event_type, "duplicate")
            return RouteOutcome(status="duplicate", purpose=row.purpose).to_dict(event_id)

        with self.transaction():
            claimed = self.ledger.claim(row)
        if not claimed:
            self.db.refresh(row)
            if row.is_settled:
                return RouteOutcome(status="duplicate", purpose=row.purpose).to_dict(event_id)
            raise ConflictException("Event is already being processed", details={"event_id": event_id})

        started = time.monotonic()
        try:
            with self.transaction():
                outcome = self._route(event)
        except Exception as exc:
            self._record_failure(row, exc, started)
            prometheus_metrics.record_webhook_event(event_type, "failed")
            if isinstance(exc, DomainException):
                raise
            raise ServiceException(
                "Webhook processing failed", details={"event_id": event_id}
            ) from exc

        with self.transaction():
            self.ledger.settle(
                row,
                ignored=outcome.status == "ignored",
                purpose=outcome.purpose,
                entity_type=outcome.entity_type,
                entity_id=outcome.entity_id,
                started=started,
            )

        self._run_followups(event_id, outcome)
        prometheus_metrics.record_webhook_event(outcome.purpose or event_type, outcome.status)
        self.log_operation(
            "process_payment_event",
            event_id=event_id,
            purpose=outcome.purpose,
            outcome=outcome.status,
            entity_id=outcome.entity_id,
        )
        return outcome.to_dict(event_id)

    def _record_failure(self, row: WebhookEvent, exc: Exception, started: float) -> None:
        self.logger.error(
            "Stripe webhook processing failed",
            extra={"event_id": row.event_id, "error": str(exc), "error_type": type(exc).__name__},
        )
        try:
            with self.transaction():
                self.ledger.fail(row, error=str(exc), started=started)
        except (RepositoryException, ServiceException):
            self.logger.exception("Could not record failure of Stripe event %s", row.event_id)

    def _run_followups(self, event_id: str, outcome: RouteOutcome) -> None:
        for followup in outcome.followups:
            try:
                followup()
                self.db.commit()
            except Exception as exc:
                self.db.rollback()
                self.logger.error(
                    "Post-purchase step failed",
                    extra={
                        "event_id": event_id,
                        "operation": getattr(followup, "__name__", "followup"),
                        "error": str(exc),
                    },
                )

    # Dispatch

    def _route(self, event: Dict[str, Any]) -> RouteOutcome:
        if event.get("type") != CHECKOUT_COMPLETED:
            return RouteOutcome(status="ignored")

        checkout = (event.get("data") or {}).get("object") or {}
        metadata = checkout.get("metadata") or {}
        purpose = metadata.get("type")
        handler = self._handlers.get(purpose or "")
        if handler is None:
            self.logger.info("Ignoring checkout with unknown purpose tag %r", purpose)
            return RouteOutcome(status="ignored", purpose=purpose)

        if self.payment_repository.get_by_event_id(str(event["id"])) is not None:
            return RouteOutcome(status="duplicate", purpose=purpose)

        context = CheckoutContext(
            event_id=str(event["id"]),
            checkout_session_id=checkout.get("id"),
            payment_intent_id=checkout.get("payment_intent"),
            amount=from_minor_units(checkout.get("amount_total")),
            currency=checkout.get("currency") or self.stripe_service.currency,
            metadata=metadata,
        )
        outcome = handler(context)
        outcome.purpose = purpose
        return outcome

    # Shared helpers

    def _require_user(self, user_id: str) -> User:
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise WebhookIntegrityException("Checkout references an unknown user", details={"user_id": user_id})
        return user

    def _create_purchase(
        self,
        context: CheckoutContext,
        *,
        user_id: str,
        payment_type: PaymentType,
        entity_type: str,
        entity_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> Payment:
        return self.payment_repository.create(
            user_id=user_id,
            type=payment_type.value,
            status=PaymentStatus.COMPLETED.value,
            amount=context.amount,
            currency=context.currency,
            stripe_event_id=context.event_id,
            stripe_session_id=context.checkout_session_id,
            stripe_payment_intent_id=context.payment_intent_id,
            related_entity_type=entity_type,
            related_entity_id=entity_id,
            details=details,
        )

    def _payout_followup(
        self,
        *,
        mentor_id: str,
        gross: Decimal,
        source_type: str,
        payment: Payment,
        transfer_group: str,
        metadata: Dict[str, str],
    ) -> Callable[[], None]:
        mentor_share, _ = split_revenue(gross)

        def initiate_payout() -> None:
            self.payout_service.initiate_payout(
                mentor_id=mentor_id,
                amount=mentor_share,
                source_type=source_type,
                source_id=payment.id,
                transfer_group=transfer_group,
                metadata=metadata,
            )

        return initiate_payout

    # Handlers

    def _handle_recording_purchase(self, context: CheckoutContext) -> RouteOutcome:
        user_id, recording_id = context.require("userId", "recordingId")
        buyer = self._require_user(user_id)
        recording = self.recording_repository.get_by_id(recording_id)
        if recording is None:
            raise WebhookIntegrityException(
                "Checkout references an unknown recording", details={"recording_id": recording_id}
            )

        payment = self._create_purchase(
            context,
            user_id=user_id,
            payment_type=PaymentType.RECORDING_PURCHASE,
            entity_type="recording",
            entity_id=recording.id,
        )
        self.recording_access_repository.grant(user_id=user_id, recording_id=recording.id, payment_id=payment.id)

        def send_receipt() -> None:
            self.notification_service.send_purchase_receipt(buyer, item_title=recording.title, amount=context.amount)

        return RouteOutcome(
            status="processed",
            entity_type="recording",
            entity_id=recording.id,
            payment=payment,
            followups=[
                self._payout_followup(
                    mentor_id=recording.contributor_id,
                    gross=context.amount,
                    source_type=PURPOSE_RECORDING,
                    payment=payment,
                    transfer_group=f"recording_{recording.id}",
                    metadata={"recording_id": recording.id, "buyer_id": user_id},
                ),
                send_receipt,
            ],
        )

    def _handle_series_purchase(self, context: CheckoutContext) -> RouteOutcome:
        user_id, series_id = context.require("userId", "seriesId")
        buyer = self._require_user(user_id)
        series = self.series_repository.get_with_items(series_id)
        if series is None:
            raise WebhookIntegrityException("Checkout references an unknown series", details={"series_id": series_id})

        payment = self._create_purchase(
            context,
            user_id=user_id,
            payment_type=PaymentType.SERIES_PURCHASE,
            entity_type="series",
            entity_id=series.id,
        )
        self.series_access_repository.grant(user_id=user_id, series_id=series.id, payment_id=payment.id)

        raw_ids = context.metadata.get("recordingIds") or ""
        recording_ids = [rid.strip() for rid in raw_ids.split(",") if rid.strip()] or series.recording_ids
        granted = 0
        for recording_id in recording_ids:
            try:
                self.recording_access_repository.grant(
                    user_id=user_id, recording_id=recording_id, payment_id=payment.id, source="SERIES"
                )
                granted += 1
            except RepositoryException as exc:
                self.logger.error(
                    "Failed to grant recording access from series",
                    extra={"series_id": series.id, "recording_id": recording_id, "error": str(exc)},
                )
        self.logger.info(
            "Series purchase completed",
            extra={"series_id": series.id, "user_id": user_id, "recordings": granted},
        )

        def send_receipt() -> None:
            self.notification_service.send_purchase_receipt(buyer, item_title=series.title, amount=context.amount)

        return RouteOutcome(
            status="processed",
            entity_type="series",
            entity_id=series.id,
            payment=payment,
            followups=[
                self._payout_followup(
                    mentor_id=series.contributor_id,
                    gross=context.amount,
                    source_type=PURPOSE_SERIES,
                    payment=payment,
                    transfer_group=f"series_{series.id}",
                    metadata={"series_id": series.id, "buyer_id": user_id},
                ),
                send_receipt,
            ],
        )

    def _handle_call_payment(self, context: CheckoutContext) -> RouteOutcome:
        user_id, mentor_id, scheduled_raw = context.require("userId", "mentorId", "scheduledAt")
        self._require_user(user_id)
        if self.user_repository.get_mentor_profile(mentor_id) is None:
            raise WebhookIntegrityException("Checkout references an unknown mentor", details={"mentor_id": mentor_id})
        try:
            scheduled_at = parse_scheduled_at(scheduled_raw)
            duration_minutes = int(context.metadata.get("durationMinutes") or 30)
        except ValueError as exc:
            raise WebhookIntegrityException(
                "Checkout scheduling metadata is malformed",
                details={"scheduledAt": scheduled_raw, "durationMinutes": context.metadata.get("durationMinutes")},
            ) from exc
        if duration_minutes not in CALL_DURATIONS:
            raise WebhookIntegrityException(
                "Checkout call duration is not supported", details={"durationMinutes": duration_minutes}
            )

        if context.checkout_session_id:
            existing = self.call_service.repository.get_by_stripe_session_id(context.checkout_session_id)
            if existing is not None:
                return RouteOutcome(status="duplicate", entity_type=CALL_ENTITY, entity_id=existing.id)

        call = self.call_service.create_paid_call(
            patient_id=user_id,
            mentor_id=mentor_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            price=context.amount,
            stripe_session_id=context.checkout_session_id,
            stripe_payment_intent_id=context.payment_intent_id,
            notes=context.metadata.get("notes"),
            now=self.clock.now(),
        )
        payment = self._create_purchase(
            context,
            user_id=user_id,
            payment_type=PaymentType.CALL_PAYMENT,
            entity_type=CALL_ENTITY,
            entity_id=call.id,
            details={"mentor_id": mentor_id},
        )

        def notify_parties() -> None:
            self.call_service.notify_call_confirmed(call)

        return RouteOutcome(
            status="processed",
            entity_type=CALL_ENTITY,
            entity_id=call.id,
            payment=payment,
            followups=[notify_parties],
        )

    def _handle_group_session_payment(self, context: CheckoutContext) -> RouteOutcome:
        user_id, session_id = context.require("userId", "groupSessionId")
        participant_user = self._require_user(user_id)
        session = self.group_session_service.repository.get_by_id(session_id)
        if session is None:
            raise WebhookIntegrityException(
                "Checkout references an unknown group session", details={"group_session_id": session_id}
            )

        payment = self._create_purchase(
            context,
            user_id=user_id,
            payment_type=PaymentType.GROUP_SESSION_PAYMENT,
            entity_type=GROUP_SESSION_ENTITY,
            entity_id=session.id,
        )
        try:
            participant = self.group_session_service.register_participant(
                session.id,
                user_id,
                amount_paid=context.amount,
                stripe_payment_intent_id=context.payment_intent_id,
            )
        except ConflictException as exc:
            # Money already moved: keep the purchase row and refund it.
            self.logger.warning(
                "Paid registration rejected",
                extra={"session_id": session.id, "user_id": user_id, "reason": exc.code},
            )
            refund_id = self.group_session_service.refund_payment_intent(
                context.payment_intent_id, idempotency_key=f"refund:checkout:{context.event_id}"
            )
            payment.details = {"registration_rejected": exc.code}
            if refund_id:
                payment.status = PaymentStatus.REFUNDED.value
                payment.stripe_refund_id = refund_id
            return RouteOutcome(
                status="processed", entity_type=GROUP_SESSION_ENTITY, entity_id=session.id, payment=payment
            )

        def notify_signup() -> None:
            mentor = self.user_repository.get_by_id(session.mentor_id)
            if mentor is not None:
                self.notification_service.send_group_session_signup(participant_user, session, mentor)

        return RouteOutcome(
            status="processed",
            entity_type="group_session_participant",
            entity_id=participant.id,
            payment=payment,
            followups=[notify_signup],
        )
