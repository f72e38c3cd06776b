# backend/mentorship/schemas/slots.py
import datetime
from typing import List

from pydantic import BaseModel


class SlotOut(BaseModel):
    start: datetime.datetime
    end: datetime.datetime
    local_start: str


class SlotDayOut(BaseModel):
    date: datetime.date
    slots: List[SlotOut]


class BookedIntervalOut(BaseModel):
    start: datetime.datetime
    end: datetime.datetime
    kind: str
    id: str


class SlotsResponse(BaseModel):
    """Bookable slots grouped by date in the mentor's time zone."""

    mentor_id: str
    timezone: str
    duration_minutes: int
    days: List[SlotDayOut]
    booked: List[BookedIntervalOut]
    blocked_dates: List[datetime.date]
