# backend/mentorship/api/dependencies.py
"""
Request dependencies: database session, clock, acting user and services.

Authentication itself happens upstream; the gateway forwards the acting user
in ``X-User-Id``.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.exceptions import UnauthorizedException
from ..database import get_db
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..services.availability_service import AvailabilityService
from ..services.call_service import CallService
from ..services.group_session_service import GroupSessionService
from ..services.payment_event_router import PaymentEventRouter
from ..services.session_lifecycle_service import SessionLifecycleService
from ..services.slot_service import SlotService

__all__ = [
    "get_db",
    "get_clock",
    "get_current_user",
    "get_availability_service",
    "get_call_service",
    "get_group_session_service",
    "get_lifecycle_service",
    "get_payment_event_router",
    "get_slot_service",
]


def get_clock() -> Clock:
    return system_clock


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id:
        raise UnauthorizedException("Authentication required")
    user = RepositoryFactory.create_user_repository(db).get_by_id(x_user_id)
    if user is None:
        raise UnauthorizedException("Unknown user")
    return user


def get_slot_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> SlotService:
    return SlotService(db, clock=clock)


def get_availability_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AvailabilityService:
    return AvailabilityService(db, clock=clock)


def get_call_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> CallService:
    return CallService(db, clock=clock)


def get_group_session_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> GroupSessionService:
    return GroupSessionService(db, clock=clock)


def get_payment_event_router(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> PaymentEventRouter:
    return PaymentEventRouter(db, clock=clock)


def get_lifecycle_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> SessionLifecycleService:
    return SessionLifecycleService(db, clock=clock)
