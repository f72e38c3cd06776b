# backend/mentorship/models/call.py
"""
One-on-one video call between a patient and a mentor.

Calls are never physically deleted; CANCELLED, COMPLETED and NO_SHOW are
terminal statuses that preserve the audit trail.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base


class CallStatus(str, Enum):
    REQUESTED = "REQUESTED"  # Manual booking awaiting mentor confirmation
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


ALLOWED_CALL_TRANSITIONS: Dict[CallStatus, FrozenSet[CallStatus]] = {
    CallStatus.REQUESTED: frozenset({CallStatus.CONFIRMED, CallStatus.CANCELLED}),
    CallStatus.CONFIRMED: frozenset({CallStatus.COMPLETED, CallStatus.CANCELLED, CallStatus.NO_SHOW}),
    CallStatus.COMPLETED: frozenset(),
    CallStatus.CANCELLED: frozenset(),
    CallStatus.NO_SHOW: frozenset(),
}

# Statuses that occupy the mentor's calendar
BLOCKING_CALL_STATUSES = (CallStatus.REQUESTED.value, CallStatus.CONFIRMED.value)


def can_transition(current: str, requested: str) -> bool:
    try:
        return CallStatus(requested) in ALLOWED_CALL_TRANSITIONS[CallStatus(current)]
    except ValueError:
        return False


class Call(Base):
    __tablename__ = "calls"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    patient_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    mentor_id = Column(String(26), ForeignKey("users.id"), nullable=False)

    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    price = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False)
    mentor_payout = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=CallStatus.REQUESTED.value)
    video_room_url = Column(String(500), nullable=True)
    stripe_session_id = Column(String(255), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    notes = Column(String(1000), nullable=True)

    # Reminder markers
    day_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    hour_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    patient = relationship("User", foreign_keys=[patient_id])
    mentor = relationship("User", foreign_keys=[mentor_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('REQUESTED', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'NO_SHOW')",
            name="ck_calls_status",
        ),
        CheckConstraint("duration_minutes IN (30, 60)", name="ck_calls_duration"),
        Index("ix_calls_mentor_scheduled", "mentor_id", "scheduled_at"),
        Index("ix_calls_status_scheduled", "status", "scheduled_at"),
    )

    @property
    def starts_at(self) -> datetime:
        return ensure_utc(self.scheduled_at)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.patient_id, self.mentor_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "mentor_id": self.mentor_id,
            "scheduled_at": self.starts_at.isoformat(),
            "duration_minutes": self.duration_minutes,
            "price": float(self.price),
            "platform_fee": float(self.platform_fee),
            "mentor_payout": float(self.mentor_payout),
            "status": self.status,
            "video_room_url": self.video_room_url,
        }

    def __repr__(self) -> str:
        return f"<Call(id={self.id}, status={self.status}, scheduled_at={self.scheduled_at})>"
