# backend/mentorship/services/email.py
"""Transactional email delivery through Resend."""

from html import unescape
import re
from typing import Any, Dict, Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def html_to_text(html: str) -> str:
    """Plain-text alternative part; some providers score HTML-only mail as spam."""
    return _WHITESPACE.sub(" ", unescape(_TAG.sub(" ", html))).strip()


class EmailService(BaseService):
    def __init__(self, db: Session, *, api_key: Optional[str] = None, sender: Optional[str] = None):
        super().__init__(db)
        api_key = api_key or settings.resend_api_key
        if not api_key:
            raise ServiceException("Resend API key not configured")
        resend.api_key = api_key
        self.sender = sender or settings.from_email

    @BaseService.measure_operation("send_email")
    def send(self, *, to: str, subject: str, html: str, text: Optional[str] = None) -> Dict[str, Any]:
        """
        Hand one message to Resend.

        Raises:
            ServiceException: the provider rejected the message or was unreachable
        """
        message: Dict[str, Any] = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
            "text": text or html_to_text(html),
        }
        try:
            response = resend.Emails.send(message)
        except Exception as e:
            raise ServiceException(f"Email sending failed: {e}", details={"to": to, "subject": subject}) from e
        self.log_operation("email_sent", subject=subject)
        return dict(response) if response else {}
