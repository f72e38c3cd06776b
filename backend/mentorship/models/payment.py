"""
Payment ledger model.

One table holds both sides of the money trail:

- purchase rows, written exactly once per completed checkout event
  (``stripe_event_id`` is unique), and
- payout rows, written once per payout attempt whatever the transfer
  outcome (``idempotency_key`` is unique per paid-out entity).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import DateTime, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class PaymentType(str, Enum):
    RECORDING_PURCHASE = "RECORDING_PURCHASE"
    SERIES_PURCHASE = "SERIES_PURCHASE"
    CALL_PAYMENT = "CALL_PAYMENT"
    GROUP_SESSION_PAYMENT = "GROUP_SESSION_PAYMENT"
    MENTOR_PAYOUT = "MENTOR_PAYOUT"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Payment(Base):
    __tablename__ = "payments"

    __table_args__ = (
        Index("ix_payments_related_entity", "related_entity_type", "related_entity_id"),
        Index("ix_payments_user_type", "user_id", "type"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    # Payer for purchases, payee for payouts
    user_id: Mapped[str] = mapped_column(String(26), nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.COMPLETED.value)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    stripe_event_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    stripe_session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_transfer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)

    related_entity_type: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    related_entity_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, type={self.type}, status={self.status}, amount={self.amount})>"
