# backend/mentorship/schemas/group_session.py
import datetime
from typing import Optional

from pydantic import Field

from .base import Money, StandardizedModel, StrictRequestModel


class GroupSessionCreate(StrictRequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    procedure_type: str
    scheduled_at: datetime.datetime
    duration_minutes: int
    capacity: int
    price_per_person: Money
    min_attendees: Optional[int] = None


class GroupSessionCancel(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class GroupSessionResponse(StandardizedModel):
    id: str
    mentor_id: str
    title: str
    description: Optional[str] = None
    procedure_type: str
    scheduled_at: datetime.datetime
    duration_minutes: int
    capacity: int
    min_attendees: int
    price_per_person: Money
    status: str
    video_room_url: Optional[str] = None
    cancellation_reason: Optional[str] = None


class RegistrationCancelResponse(StandardizedModel):
    participant_id: str
    status: str
    refunded: bool
