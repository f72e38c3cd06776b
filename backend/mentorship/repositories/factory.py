# backend/mentorship/repositories/factory.py
"""
Repository Factory for the mentorship platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .access_repository import RecordingAccessRepository, SeriesAccessRepository
from .availability_repository import AvailabilityWindowRepository, BlockedDateRepository
from .call_repository import CallRepository
from .catalog_repository import RecordingRepository, RecordingSeriesRepository
from .group_session_repository import GroupSessionParticipantRepository, GroupSessionRepository
from .payment_repository import PaymentRepository
from .user_repository import UserRepository
from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_availability_window_repository(db: Session) -> AvailabilityWindowRepository:
        return AvailabilityWindowRepository(db)

    @staticmethod
    def create_blocked_date_repository(db: Session) -> BlockedDateRepository:
        return BlockedDateRepository(db)

    @staticmethod
    def create_call_repository(db: Session) -> CallRepository:
        return CallRepository(db)

    @staticmethod
    def create_group_session_repository(db: Session) -> GroupSessionRepository:
        return GroupSessionRepository(db)

    @staticmethod
    def create_participant_repository(db: Session) -> GroupSessionParticipantRepository:
        return GroupSessionParticipantRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> PaymentRepository:
        return PaymentRepository(db)

    @staticmethod
    def create_recording_access_repository(db: Session) -> RecordingAccessRepository:
        return RecordingAccessRepository(db)

    @staticmethod
    def create_series_access_repository(db: Session) -> SeriesAccessRepository:
        return SeriesAccessRepository(db)

    @staticmethod
    def create_recording_repository(db: Session) -> RecordingRepository:
        return RecordingRepository(db)

    @staticmethod
    def create_series_repository(db: Session) -> RecordingSeriesRepository:
        return RecordingSeriesRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> WebhookEventRepository:
        return WebhookEventRepository(db)
