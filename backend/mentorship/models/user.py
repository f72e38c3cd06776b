# backend/mentorship/models/user.py
"""User and mentor profile models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.constants import DEFAULT_TIMEZONE
from ..database import Base

if TYPE_CHECKING:
    from .availability import AvailabilityWindow


class UserRole(str, Enum):
    PATIENT = "PATIENT"
    MENTOR = "MENTOR"
    ADMIN = "ADMIN"


class User(Base):
    """Platform account. Mentors additionally carry a MentorProfile."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.PATIENT.value)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    mentor_profile: Mapped[Optional["MentorProfile"]] = relationship(
        "MentorProfile", back_populates="user", uselist=False
    )

    @property
    def first_name(self) -> str:
        return (self.full_name or "").split(" ")[0] or "there"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"


class MentorProfile(Base):
    """
    Mentor-specific settings.

    ``stripe_account_id`` together with ``payouts_enabled`` is the verified
    payout destination; transfers are only attempted when both are present.
    """

    __tablename__ = "mentor_profiles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("50.00"))
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    stripe_account_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    user: Mapped["User"] = relationship("User", back_populates="mentor_profile")

    @property
    def payout_destination(self) -> Optional[str]:
        if self.stripe_account_id and self.payouts_enabled:
            return self.stripe_account_id
        return None

    def __repr__(self) -> str:
        return f"<MentorProfile(user_id={self.user_id}, payouts_enabled={self.payouts_enabled})>"
