# backend/mentorship/routes/calls.py
"""
One-on-one call routes.

Endpoints:
    POST  /api/calls - Request a call (REQUESTED until the mentor confirms)
    PATCH /api/calls/{call_id} - Move a call to another status
"""

import asyncio

from fastapi import APIRouter, Depends, status

from ..api.dependencies import get_call_service, get_current_user
from ..models.user import User
from ..schemas.call import CallCreate, CallResponse, CallStatusUpdate
from ..services.call_service import CallService

router = APIRouter(prefix="/api/calls", tags=["calls"])


@router.post("", response_model=CallResponse, status_code=status.HTTP_201_CREATED)
async def request_call(
    payload: CallCreate,
    current_user: User = Depends(get_current_user),
    call_service: CallService = Depends(get_call_service),
) -> CallResponse:
    call = await asyncio.to_thread(
        call_service.request_call,
        patient_id=current_user.id,
        mentor_id=payload.mentor_id,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        notes=payload.notes,
    )
    return CallResponse.model_validate(call)


@router.patch("/{call_id}", response_model=CallResponse)
async def update_call_status(
    call_id: str,
    payload: CallStatusUpdate,
    current_user: User = Depends(get_current_user),
    call_service: CallService = Depends(get_call_service),
) -> CallResponse:
    call = await asyncio.to_thread(
        call_service.transition_status,
        call_id,
        actor_id=current_user.id,
        new_status=payload.status,
    )
    return CallResponse.model_validate(call)
