# backend/mentorship/services/notification_service.py
"""
Notification Service for the mentorship platform.

Transactional email for calls, group sessions and purchases. Every method is
fire-and-forget: failures are logged and reported as ``False``, never raised,
so a broken mail provider cannot stall a booking flow or a lifecycle pass.
"""

from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from jinja2.exceptions import TemplateNotFound
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..models.call import Call
from ..models.group_session import GroupSession
from ..models.user import User
from .base import BaseService
from .email import EmailService
from .template_service import TemplateService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
    ) -> None:
        super().__init__(db)
        self.template_service = template_service or TemplateService()
        if email_service is None:
            try:
                email_service = EmailService(db)
            except ServiceException as exc:
                self.logger.warning(f"Email delivery disabled: {exc.message}")
        self.email_service = email_service

    def _send(self, *, event: str, to: User, subject: str, template: str, context: Dict[str, Any]) -> bool:
        if self.email_service is None:
            self.logger.info("Skipping %s email to %s: email not configured", event, to.id)
            return False
        try:
            html = self.template_service.render(template, recipient=to, **context)
            self.email_service.send(to=to.email, subject=subject, html=html)
            return True
        except TemplateNotFound as e:
            self.logger.error(f"Template error for {event}: {str(e)}")
        except ServiceException as e:
            self.logger.error(f"Failed to send {event} email to {to.id}: {e.message}")
        except Exception as e:
            self.logger.error(f"Unexpected error sending {event} email to {to.id}: {str(e)}")
        return False

    # Group sessions

    def send_group_session_signup(self, participant: User, session: GroupSession, mentor: User) -> bool:
        return self._send(
            event="group_session_signup",
            to=participant,
            subject=f"You're signed up for: {session.title}",
            template="email/group_session_signup.html",
            context={"session": session, "mentor": mentor},
        )

    def send_group_session_confirmed(self, recipient: User, session: GroupSession, *, is_host: bool) -> bool:
        return self._send(
            event="group_session_confirmed",
            to=recipient,
            subject=f"Confirmed: {session.title}",
            template="email/group_session_confirmed.html",
            context={"session": session, "is_host": is_host},
        )

    def send_group_session_cancelled(
        self, recipient: User, session: GroupSession, *, reason: str, refunded: bool = False
    ) -> bool:
        return self._send(
            event="group_session_cancelled",
            to=recipient,
            subject=f"Cancelled: {session.title}",
            template="email/group_session_cancelled.html",
            context={"session": session, "reason": reason, "refunded": refunded},
        )

    def send_group_session_reminder(self, recipient: User, session: GroupSession, *, time_until: str) -> bool:
        return self._send(
            event="group_session_reminder",
            to=recipient,
            subject=f"Reminder: {session.title} {time_until}",
            template="email/group_session_reminder.html",
            context={"session": session, "time_until": time_until},
        )

    # Calls

    def send_call_requested(self, mentor: User, patient: User, call: Call) -> bool:
        return self._send(
            event="call_requested",
            to=mentor,
            subject=f"New call request from {patient.full_name}",
            template="email/call_requested.html",
            context={"call": call, "patient": patient},
        )

    def send_call_confirmed(self, recipient: User, other_party: User, call: Call) -> bool:
        return self._send(
            event="call_confirmed",
            to=recipient,
            subject=f"Call confirmed with {other_party.full_name}",
            template="email/call_confirmed.html",
            context={"call": call, "other_party": other_party},
        )

    def send_call_cancelled(self, recipient: User, cancelled_by: User, call: Call, *, refunded: bool) -> bool:
        return self._send(
            event="call_cancelled",
            to=recipient,
            subject=f"Call cancelled by {cancelled_by.full_name}",
            template="email/call_cancelled.html",
            context={"call": call, "cancelled_by": cancelled_by, "refunded": refunded},
        )

    def send_call_reminder(self, recipient: User, other_party: User, call: Call, *, time_until: str) -> bool:
        return self._send(
            event="call_reminder",
            to=recipient,
            subject=f"Reminder: Call with {other_party.full_name} {time_until}",
            template="email/call_reminder.html",
            context={"call": call, "other_party": other_party, "time_until": time_until},
        )

    # Purchases

    def send_purchase_receipt(self, buyer: User, *, item_title: str, amount: Decimal) -> bool:
        return self._send(
            event="purchase_receipt",
            to=buyer,
            subject=f"Your purchase: {item_title}",
            template="email/purchase_receipt.html",
            context={"item_title": item_title, "amount": amount},
        )
