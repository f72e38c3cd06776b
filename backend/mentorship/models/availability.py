# backend/mentorship/models/availability.py
"""
Recurring availability windows and blocked dates.

Windows are stored as local wall-clock ``HH:MM`` strings plus the zone they
are declared in; they are expanded to UTC instants only when slots are
generated for a concrete date.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.constants import DEFAULT_TIMEZONE
from ..database import Base


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_availability_start_before_end"),
        Index("ix_availability_windows_mentor_day", "mentor_id", "day_of_week"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AvailabilityWindow(mentor_id={self.mentor_id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time} {self.timezone})>"
        )


class BlockedDate(Base):
    __tablename__ = "blocked_dates"

    __table_args__ = (UniqueConstraint("mentor_id", "blocked_date", name="uq_blocked_dates_mentor_date"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    blocked_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
