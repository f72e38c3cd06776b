# backend/mentorship/schemas/availability.py
"""Request/response schemas for weekly windows and blocked dates."""

import datetime
from typing import Optional

from pydantic import Field, field_validator

from .base import StandardizedModel, StrictRequestModel

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AvailabilityWindowCreate(StrictRequestModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: str = Field(..., pattern=HHMM_PATTERN)
    end_time: str = Field(..., pattern=HHMM_PATTERN)
    timezone: Optional[str] = None

    @field_validator("end_time")
    @classmethod
    def validate_time_order(cls, v: str, info) -> str:
        """Ensure end time is after start time."""
        start = info.data.get("start_time") if isinstance(getattr(info, "data", None), dict) else None
        if start and v <= start:
            raise ValueError("End time must be after start time")
        return v


class AvailabilityWindowResponse(StandardizedModel):
    id: str
    mentor_id: str
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str


class BlockedDateCreate(StrictRequestModel):
    date: datetime.date
    reason: Optional[str] = Field(default=None, max_length=255)


class BlockedDateResponse(StandardizedModel):
    id: str
    mentor_id: str
    blocked_date: datetime.date
    reason: Optional[str] = None
