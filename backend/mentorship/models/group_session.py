# backend/mentorship/models/group_session.py
"""
Group session and participant models.

The three nullable marker timestamps (``minimum_check_at``,
``day_reminder_sent_at``, ``hour_reminder_sent_at``) make each lifecycle pass
idempotent: once stamped, the session is never selected by that pass again.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.constants import DEFAULT_MIN_ATTENDEES
from ..core.timezone_utils import ensure_utc
from ..database import Base


class GroupSessionStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ParticipantStatus(str, Enum):
    REGISTERED = "REGISTERED"
    ATTENDED = "ATTENDED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


BLOCKING_SESSION_STATUSES = (GroupSessionStatus.SCHEDULED.value, GroupSessionStatus.CONFIRMED.value)
PAID_PARTICIPANT_STATUSES = (ParticipantStatus.REGISTERED.value, ParticipantStatus.ATTENDED.value)


class GroupSession(Base):
    __tablename__ = "group_sessions"

    __table_args__ = (
        CheckConstraint(
            "status IN ('SCHEDULED', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="ck_group_sessions_status",
        ),
        CheckConstraint("capacity > 0", name="ck_group_sessions_capacity"),
        CheckConstraint("min_attendees > 0", name="ck_group_sessions_min_attendees"),
        Index("ix_group_sessions_mentor_scheduled", "mentor_id", "scheduled_at"),
        Index("ix_group_sessions_status_scheduled", "status", "scheduled_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    procedure_type: Mapped[str] = mapped_column(String(100), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    min_attendees: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MIN_ATTENDEES)
    price_per_person: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=GroupSessionStatus.SCHEDULED.value)

    # Lifecycle markers
    minimum_check_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    day_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    hour_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    video_room_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    participants: Mapped[List["GroupSessionParticipant"]] = relationship(
        "GroupSessionParticipant",
        back_populates="session",
        order_by="GroupSessionParticipant.registered_at",
    )

    @property
    def starts_at(self) -> datetime:
        return ensure_utc(self.scheduled_at)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def registered_participants(self) -> List["GroupSessionParticipant"]:
        return [p for p in self.participants if p.status == ParticipantStatus.REGISTERED.value]

    def __repr__(self) -> str:
        return f"<GroupSession(id={self.id}, status={self.status}, scheduled_at={self.scheduled_at})>"


class GroupSessionParticipant(Base):
    __tablename__ = "group_session_participants"

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_group_session_participants_session_user"),
        CheckConstraint(
            "status IN ('REGISTERED', 'ATTENDED', 'CANCELLED', 'REFUNDED')",
            name="ck_group_session_participants_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("group_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ParticipantStatus.REGISTERED.value)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    session: Mapped["GroupSession"] = relationship("GroupSession", back_populates="participants")
    user = relationship("User")

    @property
    def is_paid(self) -> bool:
        return self.amount_paid is not None and Decimal(self.amount_paid) > 0
