# backend/mentorship/routes/group_sessions.py
"""
Group session routes. Registration itself happens through the payment webhook.

Endpoints:
    POST /api/group-sessions - Create a session (host)
    POST /api/group-sessions/{session_id}/cancel - Host cancels, all seats released
    POST /api/group-sessions/{session_id}/registration/cancel - Participant self-cancel
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from ..api.dependencies import get_current_user, get_group_session_service
from ..models.user import User
from ..schemas.group_session import (
    GroupSessionCancel,
    GroupSessionCreate,
    GroupSessionResponse,
    RegistrationCancelResponse,
)
from ..services.group_session_service import GroupSessionService

router = APIRouter(prefix="/api/group-sessions", tags=["group-sessions"])


@router.post("", response_model=GroupSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_group_session(
    payload: GroupSessionCreate,
    current_user: User = Depends(get_current_user),
    service: GroupSessionService = Depends(get_group_session_service),
) -> GroupSessionResponse:
    session = await asyncio.to_thread(
        service.create_session,
        current_user.id,
        title=payload.title,
        procedure_type=payload.procedure_type,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        capacity=payload.capacity,
        price_per_person=payload.price_per_person,
        min_attendees=payload.min_attendees,
        description=payload.description,
    )
    return GroupSessionResponse.model_validate(session)


@router.post("/{session_id}/cancel", response_model=GroupSessionResponse)
async def cancel_group_session(
    session_id: str,
    payload: Optional[GroupSessionCancel] = Body(default=None),
    current_user: User = Depends(get_current_user),
    service: GroupSessionService = Depends(get_group_session_service),
) -> GroupSessionResponse:
    session = await asyncio.to_thread(
        service.host_cancel,
        session_id,
        actor_id=current_user.id,
        reason=payload.reason if payload else None,
    )
    return GroupSessionResponse.model_validate(session)


@router.post("/{session_id}/registration/cancel", response_model=RegistrationCancelResponse)
async def cancel_registration(
    session_id: str,
    current_user: User = Depends(get_current_user),
    service: GroupSessionService = Depends(get_group_session_service),
) -> RegistrationCancelResponse:
    outcome = await asyncio.to_thread(service.cancel_registration, session_id, current_user.id)
    return RegistrationCancelResponse(
        participant_id=outcome.participant.id,
        status=outcome.participant.status,
        refunded=outcome.refunded,
    )
