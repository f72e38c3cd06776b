# backend/mentorship/models/__init__.py
"""
Database models for the mentorship platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .access import RecordingAccess, SeriesAccess
from .availability import AvailabilityWindow, BlockedDate
from .call import ALLOWED_CALL_TRANSITIONS, Call, CallStatus
from .catalog import Recording, RecordingSeries, RecordingSeriesItem
from .group_session import GroupSession, GroupSessionParticipant, GroupSessionStatus, ParticipantStatus
from .payment import Payment, PaymentStatus, PaymentType
from .user import MentorProfile, User, UserRole
from .webhook_event import WebhookEvent

__all__ = [
    "ALLOWED_CALL_TRANSITIONS",
    "AvailabilityWindow",
    "BlockedDate",
    "Call",
    "CallStatus",
    "GroupSession",
    "GroupSessionParticipant",
    "GroupSessionStatus",
    "MentorProfile",
    "ParticipantStatus",
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "Recording",
    "RecordingAccess",
    "RecordingSeries",
    "RecordingSeriesItem",
    "SeriesAccess",
    "User",
    "UserRole",
    "WebhookEvent",
]
