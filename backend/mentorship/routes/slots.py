# backend/mentorship/routes/slots.py
"""
Mentor slot routes.

Endpoints:
    GET /api/mentors/{mentor_id}/slots - Bookable slots for the next two weeks
"""

import asyncio

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_slot_service
from ..schemas.slots import BookedIntervalOut, SlotDayOut, SlotOut, SlotsResponse
from ..services.slot_service import SlotService

router = APIRouter(prefix="/api/mentors", tags=["slots"])


@router.get("/{mentor_id}/slots", response_model=SlotsResponse)
async def get_mentor_slots(
    mentor_id: str,
    duration: int = Query(30, description="Slot length in minutes"),
    purpose: str = Query("call", pattern="^(call|group_session)$"),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotsResponse:
    availability = await asyncio.to_thread(
        slot_service.generate_slots, mentor_id, duration, purpose=purpose
    )
    return SlotsResponse(
        mentor_id=availability.mentor_id,
        timezone=availability.timezone,
        duration_minutes=availability.duration_minutes,
        days=[
            SlotDayOut(
                date=day,
                slots=[SlotOut(start=s.start, end=s.end, local_start=s.local_start) for s in slots],
            )
            for day, slots in sorted(availability.days.items())
        ],
        booked=[BookedIntervalOut.model_validate(b.to_dict()) for b in availability.booked],
        blocked_dates=availability.blocked_dates,
    )
