# backend/mentorship/models/webhook_event.py
"""
Ledger of verified payment-processor events.

One row per ``(source, event_id)``. Redeliveries bump ``retry_count`` on the
existing row; the row's status decides whether a delivery is processed again.
"""

from enum import Enum
from typing import Tuple

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base

LEDGER_JSON = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")


class LedgerStatus(str, Enum):
    RECEIVED = "received"
    PROCESSING = "processing"
    PROCESSED = "processed"
    IGNORED = "ignored"  # Verified, but nothing on the platform reacts to it
    FAILED = "failed"


# A worker may claim these; FAILED rows are retried on redelivery
CLAIMABLE_LEDGER_STATUSES: Tuple[str, ...] = (LedgerStatus.RECEIVED.value, LedgerStatus.FAILED.value)
SETTLED_LEDGER_STATUSES: Tuple[str, ...] = (LedgerStatus.PROCESSED.value, LedgerStatus.IGNORED.value)


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    source = Column(String(50), nullable=False)
    event_id = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=False)
    # Checkout metadata ``type`` tag, once known
    purpose = Column(String(40), nullable=True)

    payload = Column(LEDGER_JSON, nullable=False)
    headers = Column(LEDGER_JSON, nullable=True)

    status = Column(String(20), nullable=False, default=LedgerStatus.RECEIVED.value)
    error = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    entity_type = Column(String(40), nullable=True)
    entity_id = Column(String(26), nullable=True)

    retry_count = Column(Integer, nullable=False, default=0)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)
    # A PROCESSING row whose claim is older than the claim TTL belongs to a dead worker
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    settled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "event_id", name="uq_webhook_events_source_event_id"),
        Index("ix_webhook_events_status_received", "status", "received_at"),
        CheckConstraint(
            "status IN ('received', 'processing', 'processed', 'ignored', 'failed')",
            name="ck_webhook_events_status",
        ),
    )

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_LEDGER_STATUSES

    def __repr__(self) -> str:
        return f"<WebhookEvent {self.source}:{self.event_id} {self.status}>"
