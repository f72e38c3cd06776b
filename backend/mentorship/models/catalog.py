# backend/mentorship/models/catalog.py
"""Sellable recordings and recording bundles (series)."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base


class Recording(Base):
    __tablename__ = "recordings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    contributor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class RecordingSeries(Base):
    __tablename__ = "recording_series"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    contributor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items: Mapped[List["RecordingSeriesItem"]] = relationship(
        "RecordingSeriesItem", order_by="RecordingSeriesItem.position", cascade="all, delete-orphan"
    )

    @property
    def recording_ids(self) -> List[str]:
        return [item.recording_id for item in self.items]


class RecordingSeriesItem(Base):
    __tablename__ = "recording_series_items"

    series_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("recording_series.id", ondelete="CASCADE"), primary_key=True
    )
    recording_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("recordings.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
