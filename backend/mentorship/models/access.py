# backend/mentorship/models/access.py
"""Access grants derived from completed purchases."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..database import Base


class RecordingAccess(Base):
    __tablename__ = "recording_access"

    __table_args__ = (UniqueConstraint("user_id", "recording_id", name="uq_recording_access_user_recording"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    recording_id: Mapped[str] = mapped_column(String(26), ForeignKey("recordings.id"), nullable=False)
    payment_id: Mapped[Optional[str]] = mapped_column(String(26), ForeignKey("payments.id"), nullable=True)
    # PURCHASE or SERIES
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="PURCHASE")
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SeriesAccess(Base):
    __tablename__ = "series_access"

    __table_args__ = (UniqueConstraint("user_id", "series_id", name="uq_series_access_user_series"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    series_id: Mapped[str] = mapped_column(String(26), ForeignKey("recording_series.id"), nullable=False)
    payment_id: Mapped[Optional[str]] = mapped_column(String(26), ForeignKey("payments.id"), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
