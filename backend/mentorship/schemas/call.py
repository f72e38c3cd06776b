# backend/mentorship/schemas/call.py
import datetime
from typing import Optional

from pydantic import Field

from .base import Money, StandardizedModel, StrictRequestModel


class CallCreate(StrictRequestModel):
    """Manual booking; the call starts REQUESTED until the mentor confirms."""

    mentor_id: str
    scheduled_at: datetime.datetime
    duration_minutes: int
    notes: Optional[str] = Field(default=None, max_length=1000)


class CallStatusUpdate(StrictRequestModel):
    status: str


class CallResponse(StandardizedModel):
    id: str
    patient_id: str
    mentor_id: str
    scheduled_at: datetime.datetime
    duration_minutes: int
    price: Money
    platform_fee: Money
    mentor_payout: Money
    status: str
    video_room_url: Optional[str] = None
    confirmed_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None
    cancelled_at: Optional[datetime.datetime] = None
