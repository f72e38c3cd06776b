# backend/mentorship/services/webhook_ledger_service.py
"""
Webhook ledger bookkeeping.

Each verified delivery is written down before anything reacts to it:

    received -> processing -> processed | ignored | failed

A failed row can be claimed again by the next delivery; a processed or
ignored row is settled for good. A row left PROCESSING by a worker that
died is taken over once its claim is older than the claim TTL. All methods
flush; the caller commits.
"""

from datetime import timedelta
import time
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.config import settings
from ..core.exceptions import RepositoryException
from ..models.webhook_event import LedgerStatus, WebhookEvent
from ..repositories.base_repository import integrity_violation
from ..repositories.factory import RepositoryFactory
from .base import BaseService

REDACTED = "[redacted]"
_SECRET_HEADER_NAMES = frozenset({"authorization", "cookie", "stripe-signature", "x-api-key", "x-cron-secret"})


def redact_headers(headers: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy request headers for storage, blanking anything credential-like."""
    if not headers:
        return None
    return {name: REDACTED if name.lower() in _SECRET_HEADER_NAMES else value for name, value in headers.items()}


def elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class WebhookLedgerService(BaseService):
    def __init__(self, db: Session, *, clock: Optional[Clock] = None, claim_ttl: Optional[timedelta] = None):
        super().__init__(db)
        self.clock = clock or system_clock
        self.claim_ttl = claim_ttl or timedelta(seconds=settings.webhook_claim_ttl_seconds)
        self.repository = RepositoryFactory.create_webhook_event_repository(db)

    def record_delivery(
        self,
        *,
        source: str,
        event_id: str,
        event_type: str,
        payload: Dict[str, Any],
        headers: Optional[Mapping[str, Any]] = None,
    ) -> WebhookEvent:
        """
        Return the ledger row for this delivery, creating it on first sight.

        Two workers racing on the first delivery both end up with the same
        row: the loser's insert hits the unique constraint and is counted as
        a redelivery.
        """
        stored_headers = redact_headers(headers)
        row = self.repository.get_delivery(source, event_id)
        if row is None:
            try:
                return self.repository.create(
                    source=source,
                    event_id=event_id,
                    event_type=event_type or "unknown",
                    payload=payload,
                    headers=stored_headers,
                    status=LedgerStatus.RECEIVED.value,
                    received_at=self.clock.now(),
                    retry_count=0,
                )
            except RepositoryException as exc:
                if not integrity_violation(exc):
                    raise
                row = self.repository.get_delivery(source, event_id)
                if row is None:
                    raise

        row.retry_count = (row.retry_count or 0) + 1
        row.last_retry_at = self.clock.now()
        if stored_headers is not None:
            row.headers = stored_headers
        self.repository.flush()
        return row

    def claim(self, row: WebhookEvent) -> bool:
        """Take the row for processing; an abandoned PROCESSING claim past ``claim_ttl`` is taken over."""
        now = self.clock.now()
        claimed = self.repository.claim(row.id, now=now, stale_before=now - self.claim_ttl)
        if claimed:
            # The UPDATE bypassed the identity map
            row.status = LedgerStatus.PROCESSING.value
            row.claimed_at = now
            row.error = None
            row.settled_at = None
        return claimed

    def settle(
        self,
        row: WebhookEvent,
        *,
        ignored: bool = False,
        purpose: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        started: Optional[float] = None,
    ) -> WebhookEvent:
        row.status = (LedgerStatus.IGNORED if ignored else LedgerStatus.PROCESSED).value
        row.purpose = purpose
        row.entity_type = entity_type
        row.entity_id = entity_id
        return self._close(row, started)

    def fail(self, row: WebhookEvent, *, error: str, started: Optional[float] = None) -> WebhookEvent:
        row.status = LedgerStatus.FAILED.value
        row.error = error
        return self._close(row, started)

    def _close(self, row: WebhookEvent, started: Optional[float]) -> WebhookEvent:
        row.settled_at = self.clock.now()
        row.duration_ms = elapsed_ms(started) if started is not None else None
        self.repository.flush()
        return row
