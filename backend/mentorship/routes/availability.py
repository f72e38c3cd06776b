# backend/mentorship/routes/availability.py
"""
Mentor availability routes. The acting mentor always edits their own data.

Endpoints:
    GET    /api/availability/windows
    POST   /api/availability/windows
    DELETE /api/availability/windows/{window_id}
    GET    /api/availability/blocked-dates
    POST   /api/availability/blocked-dates
    DELETE /api/availability/blocked-dates/{blocked_date}
"""

import asyncio
import datetime
from typing import List

from fastapi import APIRouter, Depends, Response, status

from ..api.dependencies import get_availability_service, get_current_user
from ..core.exceptions import NotFoundException
from ..models.user import User
from ..schemas.availability import (
    AvailabilityWindowCreate,
    AvailabilityWindowResponse,
    BlockedDateCreate,
    BlockedDateResponse,
)
from ..services.availability_service import AvailabilityService

router = APIRouter(prefix="/api/availability", tags=["availability"])


@router.get("/windows", response_model=List[AvailabilityWindowResponse])
async def list_windows(
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    windows = await asyncio.to_thread(service.list_windows, current_user.id)
    return [AvailabilityWindowResponse.model_validate(w) for w in windows]


@router.post("/windows", response_model=AvailabilityWindowResponse, status_code=status.HTTP_201_CREATED)
async def add_window(
    payload: AvailabilityWindowCreate,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityWindowResponse:
    window = await asyncio.to_thread(
        service.add_window,
        current_user.id,
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
        timezone=payload.timezone,
    )
    return AvailabilityWindowResponse.model_validate(window)


@router.delete("/windows/{window_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_window(
    window_id: str,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    await asyncio.to_thread(service.remove_window, current_user.id, window_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/blocked-dates", response_model=List[BlockedDateResponse])
async def list_blocked_dates(
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[BlockedDateResponse]:
    rows = await asyncio.to_thread(service.list_blocked_dates, current_user.id)
    return [BlockedDateResponse.model_validate(row) for row in rows]


@router.post("/blocked-dates", response_model=BlockedDateResponse, status_code=status.HTTP_201_CREATED)
async def block_date(
    payload: BlockedDateCreate,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
) -> BlockedDateResponse:
    blocked = await asyncio.to_thread(service.block_date, current_user.id, payload.date, payload.reason)
    return BlockedDateResponse.model_validate(blocked)


@router.delete("/blocked-dates/{blocked_date}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_date(
    blocked_date: datetime.date,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    removed = await asyncio.to_thread(service.unblock_date, current_user.id, blocked_date)
    if not removed:
        raise NotFoundException("Blocked date not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
