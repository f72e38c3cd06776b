# backend/mentorship/core/exceptions.py
"""
Exceptions raised by services and rendered by ``mentorship.errors``.

Each ``DomainException`` subclass carries the HTTP status it maps to. ``code``
defaults to the class name; the booking-specific subclasses below pin a
stable machine-readable code instead.
"""

from typing import Any, Dict, Optional

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or type(self).__name__
        self.details = details or {}


class ValidationException(DomainException):
    """Input is well-formed but breaks a booking rule (duration, hours, notice)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """The request collides with existing state."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """An internal step failed; the message is safe to show, details are for logs."""


class BookingConflictException(ConflictException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message or "This time conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details,
        )


class InsufficientNoticeException(ValidationException):
    def __init__(self, required_hours: int, provided_hours: float):
        super().__init__(
            f"Sessions must be scheduled at least {required_hours} hours in advance",
            code="INSUFFICIENT_NOTICE",
            details={"required_hours": required_hours, "provided_hours": round(provided_hours, 2)},
        )


class AvailabilityOverlapException(ConflictException):
    def __init__(self, day_of_week: int, new_range: str, conflicting_range: str):
        super().__init__(
            f"Overlapping window on day {day_of_week}: {new_range} conflicts with {conflicting_range}",
            code="AVAILABILITY_OVERLAP",
            details={
                "day_of_week": day_of_week,
                "new_window": new_range,
                "conflicting_window": conflicting_range,
            },
        )


class CapacityExceededException(ConflictException):
    def __init__(self, session_id: str, capacity: int):
        super().__init__(
            "This session is full",
            code="CAPACITY_EXCEEDED",
            details={"session_id": session_id, "capacity": capacity},
        )


class InvalidStatusTransitionException(ConflictException):
    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(
            f"Cannot change {entity} status from {current} to {requested}",
            code="INVALID_STATUS_TRANSITION",
            details={"entity": entity, "current": current, "requested": requested},
        )


class WebhookIntegrityException(ValidationException):
    """Unverifiable signature or checkout metadata missing required fields."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="WEBHOOK_INTEGRITY", details=details)


class RepositoryException(Exception):
    """A data-access call failed; the SQLAlchemy error is chained as ``__cause__``."""
