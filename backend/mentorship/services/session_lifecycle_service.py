# backend/mentorship/services/session_lifecycle_service.py
"""
Session Lifecycle Service.

Time-driven passes run by the periodic trigger:

- minimum attendance: 3-4 hours before a SCHEDULED group session, confirm it
  (room + emails) or cancel it and refund every seat
- reminders: 24h and 1h emails for confirmed group sessions and calls
- auto-completion: CONFIRMED group sessions that ended at least 30 minutes
  ago become COMPLETED and the mentor share is paid out

Every pass selects rows by their marker columns, so a rerun over the same
window does nothing twice. A failure on one item is recorded and the pass
moves on to the next.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.pass_lease import pass_lease
from ..core.timezone_utils import ensure_utc
from ..models.call import Call
from ..models.group_session import (
    PAID_PARTICIPANT_STATUSES,
    GroupSession,
    GroupSessionStatus,
    ParticipantStatus,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .group_session_service import GROUP_SESSION_ENTITY, GroupSessionService
from .notification_service import NotificationService
from .payout_service import PayoutService, split_revenue
from .stripe_service import StripeService
from .video_service import VideoRoomService, group_room_id

logger = logging.getLogger(__name__)

MINIMUM_NOT_MET_REASON = "The minimum number of participants was not met"
ROOM_UNAVAILABLE_REASON = "A video room could not be set up for this session"

# Pass names double as lease names and metric labels
MINIMUM_CHECK_PASS = "minimum_attendance"
REMINDER_PASS = "group_reminders"
CALL_REMINDER_PASS = "call_reminders"
AUTO_COMPLETE_PASS = "auto_completion"

MINIMUM_CHECK_WINDOW = (timedelta(hours=3), timedelta(hours=4))
GROUP_DAY_REMINDER_WINDOW = (timedelta(hours=24), timedelta(hours=25))
GROUP_HOUR_REMINDER_WINDOW = (timedelta(minutes=45), timedelta(minutes=75))
CALL_DAY_REMINDER_WINDOW = (timedelta(hours=23), timedelta(hours=25))
CALL_HOUR_REMINDER_WINDOW = (timedelta(minutes=55), timedelta(minutes=65))
AUTO_COMPLETE_GRACE = timedelta(minutes=30)

DAY_REMINDER_LABEL = "tomorrow"
HOUR_REMINDER_LABEL = "in 1 hour"


class SessionLifecycleService(BaseService):
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
        self.repository = RepositoryFactory.create_group_session_repository(db)
        self.participant_repository = RepositoryFactory.create_participant_repository(db)
        self.call_repository = RepositoryFactory.create_call_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.notification_service = notification_service or NotificationService(db)
        self.video_service = video_service or VideoRoomService()
        self.stripe_service = stripe_service or StripeService(db)
        self.payout_service = payout_service or PayoutService(db, stripe_service=self.stripe_service)
        self.group_session_service = GroupSessionService(
            db,
            clock=self.clock,
            notification_service=self.notification_service,
            stripe_service=self.stripe_service,
        )

    def _item_failed(self, pass_name: str, item_id: str, exc: Exception, errors: List[str]) -> None:
        self.db.rollback()
        self.logger.error(
            "Lifecycle item failed",
            extra={"pass_name": pass_name, "item_id": item_id, "error": str(exc)},
            exc_info=True,
        )
        errors.append(f"{item_id}: {exc}")
        prometheus_metrics.record_lifecycle_item(pass_name, "error")

    # Minimum attendance

    @BaseService.measure_operation("run_minimum_check")
    def run_minimum_check(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Confirm or cancel SCHEDULED sessions starting 3-4 hours from now.

        Sessions already closer than the window but still unmarked are settled
        too; a failed room is retried on each run until then.
        """
        now = ensure_utc(now or self.clock.now())
        results: Dict[str, Any] = {"confirmed": 0, "cancelled": 0, "errors": []}
        window_start, window_end = MINIMUM_CHECK_WINDOW
        sessions = self.repository.get_minimum_check_candidates(now + window_start, now + window_end)

        for session in sessions:
            try:
                registered = self.participant_repository.count_registered(session.id)
                if registered >= session.min_attendees:
                    if self._confirm_session(session, now, results["errors"]):
                        results["confirmed"] += 1
                else:
                    self._cancel_for_low_attendance(session, now, results["errors"])
                    results["cancelled"] += 1
            except Exception as exc:
                self._item_failed(MINIMUM_CHECK_PASS, session.id, exc, results["errors"])

        for session in self.repository.get_overdue_minimum_checks(before=now + window_start):
            try:
                if self._settle_overdue(session, now, results["errors"]):
                    results["confirmed"] += 1
                else:
                    results["cancelled"] += 1
            except Exception as exc:
                self._item_failed(MINIMUM_CHECK_PASS, session.id, exc, results["errors"])

        return results

    def _settle_overdue(self, session: GroupSession, now: datetime, errors: List[str]) -> bool:
        """
        Last chance for a session the window left unmarked (room failures, missed runs).

        It is confirmed if it can still be, otherwise cancelled and refunded, so
        no session reaches its start time SCHEDULED. Returns True when confirmed.
        """
        registered = self.participant_repository.count_registered(session.id)
        if registered < session.min_attendees:
            self._cancel_for_low_attendance(session, now, errors)
            return False
        if session.starts_at > now and self._confirm_session(session, now, errors):
            return True
        session.minimum_check_at = now
        outcomes = self.group_session_service.cancel_and_release(session, reason=ROOM_UNAVAILABLE_REASON, now=now)
        for outcome in outcomes:
            if outcome.error:
                errors.append(f"{session.id}: refund for participant {outcome.participant.id} failed: {outcome.error}")
        prometheus_metrics.record_lifecycle_item(MINIMUM_CHECK_PASS, "cancelled")
        self.log_operation("cancel_unconfirmed_group_session", session_id=session.id, registered=registered)
        return False

    def _confirm_session(self, session: GroupSession, now: datetime, errors: List[str]) -> bool:
        room_url = self.video_service.try_provision(
            logical_id=group_room_id(session.id),
            scheduled_start=session.starts_at,
            duration_minutes=session.duration_minutes,
            max_participants=session.capacity + 1,
            now=now,
        )
        if room_url is None:
            # No marker: the next run inside the window retries the room.
            errors.append(f"{session.id}: video room provisioning failed")
            prometheus_metrics.record_lifecycle_item(MINIMUM_CHECK_PASS, "error")
            return False

        with self.transaction():
            session.status = GroupSessionStatus.CONFIRMED.value
            session.video_room_url = room_url
            session.minimum_check_at = now

        for participant in session.registered_participants:
            if participant.user is not None:
                self.notification_service.send_group_session_confirmed(participant.user, session, is_host=False)
        mentor = self.user_repository.get_by_id(session.mentor_id)
        if mentor is not None:
            self.notification_service.send_group_session_confirmed(mentor, session, is_host=True)

        prometheus_metrics.record_lifecycle_item(MINIMUM_CHECK_PASS, "confirmed")
        self.log_operation("confirm_group_session", session_id=session.id)
        return True

    def _cancel_for_low_attendance(self, session: GroupSession, now: datetime, errors: List[str]) -> None:
        # The marker is committed together with the CANCELLED status.
        session.minimum_check_at = now
        outcomes = self.group_session_service.cancel_and_release(
            session, reason=MINIMUM_NOT_MET_REASON, now=now
        )
        for outcome in outcomes:
            if outcome.error:
                errors.append(f"{session.id}: refund for participant {outcome.participant.id} failed: {outcome.error}")
        prometheus_metrics.record_lifecycle_item(MINIMUM_CHECK_PASS, "cancelled")

    # Reminders

    @BaseService.measure_operation("run_group_reminders")
    def run_group_reminders(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = ensure_utc(now or self.clock.now())
        results: Dict[str, Any] = {"day": 0, "hour": 0, "errors": []}

        day_start, day_end = GROUP_DAY_REMINDER_WINDOW
        for session in self.repository.get_day_reminder_candidates(now + day_start, now + day_end):
            try:
                self._remind_group_session(session, DAY_REMINDER_LABEL)
                with self.transaction():
                    session.day_reminder_sent_at = now
                results["day"] += 1
                prometheus_metrics.record_lifecycle_item(REMINDER_PASS, "reminded")
            except Exception as exc:
                self._item_failed(REMINDER_PASS, session.id, exc, results["errors"])

        hour_start, hour_end = GROUP_HOUR_REMINDER_WINDOW
        for session in self.repository.get_hour_reminder_candidates(now + hour_start, now + hour_end):
            try:
                self._remind_group_session(session, HOUR_REMINDER_LABEL)
                with self.transaction():
                    session.hour_reminder_sent_at = now
                results["hour"] += 1
                prometheus_metrics.record_lifecycle_item(REMINDER_PASS, "reminded")
            except Exception as exc:
                self._item_failed(REMINDER_PASS, session.id, exc, results["errors"])

        return results

    def _remind_group_session(self, session: GroupSession, time_until: str) -> None:
        for participant in session.registered_participants:
            if participant.user is not None:
                self.notification_service.send_group_session_reminder(
                    participant.user, session, time_until=time_until
                )
        mentor = self.user_repository.get_by_id(session.mentor_id)
        if mentor is not None:
            self.notification_service.send_group_session_reminder(mentor, session, time_until=time_until)

    @BaseService.measure_operation("run_call_reminders")
    def run_call_reminders(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = ensure_utc(now or self.clock.now())
        results: Dict[str, Any] = {"day": 0, "hour": 0, "errors": []}

        day_start, day_end = CALL_DAY_REMINDER_WINDOW
        for call in self.call_repository.get_day_reminder_candidates(now + day_start, now + day_end):
            try:
                self._remind_call(call, DAY_REMINDER_LABEL)
                with self.transaction():
                    call.day_reminder_sent_at = now
                results["day"] += 1
                prometheus_metrics.record_lifecycle_item(CALL_REMINDER_PASS, "reminded")
            except Exception as exc:
                self._item_failed(CALL_REMINDER_PASS, call.id, exc, results["errors"])

        hour_start, hour_end = CALL_HOUR_REMINDER_WINDOW
        for call in self.call_repository.get_hour_reminder_candidates(now + hour_start, now + hour_end):
            try:
                self._remind_call(call, HOUR_REMINDER_LABEL)
                with self.transaction():
                    call.hour_reminder_sent_at = now
                results["hour"] += 1
                prometheus_metrics.record_lifecycle_item(CALL_REMINDER_PASS, "reminded")
            except Exception as exc:
                self._item_failed(CALL_REMINDER_PASS, call.id, exc, results["errors"])

        return results

    def _remind_call(self, call: Call, time_until: str) -> None:
        if call.patient is None or call.mentor is None:
            return
        self.notification_service.send_call_reminder(call.patient, call.mentor, call, time_until=time_until)
        self.notification_service.send_call_reminder(call.mentor, call.patient, call, time_until=time_until)

    # Auto-completion

    @BaseService.measure_operation("run_auto_completion")
    def run_auto_completion(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Complete CONFIRMED sessions that ended at least 30 minutes ago and pay the mentor."""
        now = ensure_utc(now or self.clock.now())
        results: Dict[str, Any] = {"count": 0, "errors": []}

        for session in self.repository.get_confirmed_sessions():
            if session.ends_at > now - AUTO_COMPLETE_GRACE:
                continue
            try:
                mentor_share = self._complete_session(session, now)
                results["count"] += 1
                prometheus_metrics.record_lifecycle_item(AUTO_COMPLETE_PASS, "completed")
            except Exception as exc:
                self._item_failed(AUTO_COMPLETE_PASS, session.id, exc, results["errors"])
                continue

            try:
                payout = self.payout_service.initiate_payout(
                    mentor_id=session.mentor_id,
                    amount=mentor_share,
                    source_type=GROUP_SESSION_ENTITY,
                    source_id=session.id,
                    transfer_group=f"group_session_{session.id}",
                )
                self.db.commit()
                if payout.status == "failed":
                    results["errors"].append(f"{session.id}: payout failed: {payout.reason}")
            except Exception as exc:
                self.db.rollback()
                self.logger.error(
                    "Group session payout failed",
                    extra={"session_id": session.id, "error": str(exc)},
                    exc_info=True,
                )
                results["errors"].append(f"{session.id}: payout failed: {exc}")

        return results

    def _complete_session(self, session: GroupSession, now: datetime) -> Decimal:
        paid = [p for p in session.participants if p.status in PAID_PARTICIPANT_STATUSES]
        gross = sum((Decimal(p.amount_paid or 0) for p in paid), Decimal("0"))
        mentor_share, _ = split_revenue(gross)

        with self.transaction():
            session.status = GroupSessionStatus.COMPLETED.value
            session.completed_at = now
            for participant in paid:
                if participant.status == ParticipantStatus.REGISTERED.value:
                    participant.status = ParticipantStatus.ATTENDED.value

        self.log_operation(
            "complete_group_session",
            session_id=session.id,
            attendees=len(paid),
            gross=str(gross),
            mentor_share=str(mentor_share),
        )
        return mentor_share

    # Entry point

    def run_all(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run every pass once and return a summary.

        Each pass holds its own lease; a pass whose lease is held elsewhere is
        listed under ``skipped_passes`` instead of running concurrently.
        """
        now = ensure_utc(now or self.clock.now())
        summary: Dict[str, Any] = {
            "minimum_checks": {"confirmed": 0, "cancelled": 0, "errors": []},
            "reminders": {"day": 0, "hour": 0, "errors": []},
            "call_reminders": {"day": 0, "hour": 0, "errors": []},
            "completed": {"count": 0, "errors": []},
            "skipped_passes": [],
            "errors": [],
        }
        passes: List[Tuple[str, str, Callable[..., Dict[str, Any]]]] = [
            (MINIMUM_CHECK_PASS, "minimum_checks", self.run_minimum_check),
            (REMINDER_PASS, "reminders", self.run_group_reminders),
            (CALL_REMINDER_PASS, "call_reminders", self.run_call_reminders),
            (AUTO_COMPLETE_PASS, "completed", self.run_auto_completion),
        ]

        for pass_name, key, runner in passes:
            started = time.monotonic()
            with pass_lease(pass_name) as acquired:
                if not acquired:
                    self.logger.info("Lifecycle pass skipped: lease held", extra={"pass_name": pass_name})
                    summary["skipped_passes"].append(pass_name)
                    continue
                try:
                    summary[key] = runner(now=now)
                except Exception as exc:
                    self.db.rollback()
                    self.logger.error(
                        "Lifecycle pass failed",
                        extra={"pass_name": pass_name, "error": str(exc)},
                        exc_info=True,
                    )
                    summary[key]["errors"].append(f"{pass_name}: {exc}")
            prometheus_metrics.observe_lifecycle_pass(pass_name, time.monotonic() - started)
            summary["errors"].extend(summary[key]["errors"])

        summary["timestamp"] = now.isoformat()
        self.log_operation(
            "run_lifecycle",
            confirmed=summary["minimum_checks"]["confirmed"],
            cancelled=summary["minimum_checks"]["cancelled"],
            completed=summary["completed"]["count"],
            errors=len(summary["errors"]),
            skipped=len(summary["skipped_passes"]),
        )
        return summary
