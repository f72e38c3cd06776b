# backend/mentorship/repositories/access_repository.py
"""Access grants. Grants are upserts: a duplicate grant returns the existing row."""

from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.access import RecordingAccess, SeriesAccess
from .base_repository import BaseRepository, integrity_violation


class RecordingAccessRepository(BaseRepository[RecordingAccess]):
    def __init__(self, db: Session):
        super().__init__(db, RecordingAccess)

    def get_for_user(self, user_id: str, recording_id: str) -> Optional[RecordingAccess]:
        return self.find_one_by(user_id=user_id, recording_id=recording_id)

    def grant(
        self, *, user_id: str, recording_id: str, payment_id: Optional[str], source: str = "PURCHASE"
    ) -> RecordingAccess:
        existing = self.get_for_user(user_id, recording_id)
        if existing is not None:
            return existing
        try:
            return self.create(user_id=user_id, recording_id=recording_id, payment_id=payment_id, source=source)
        except RepositoryException as exc:
            if integrity_violation(exc):
                raced = self.get_for_user(user_id, recording_id)
                if raced is not None:
                    return raced
            raise


class SeriesAccessRepository(BaseRepository[SeriesAccess]):
    def __init__(self, db: Session):
        super().__init__(db, SeriesAccess)

    def get_for_user(self, user_id: str, series_id: str) -> Optional[SeriesAccess]:
        return self.find_one_by(user_id=user_id, series_id=series_id)

    def grant(self, *, user_id: str, series_id: str, payment_id: Optional[str]) -> SeriesAccess:
        existing = self.get_for_user(user_id, series_id)
        if existing is not None:
            return existing
        try:
            return self.create(user_id=user_id, series_id=series_id, payment_id=payment_id)
        except RepositoryException as exc:
            if integrity_violation(exc):
                raced = self.get_for_user(user_id, series_id)
                if raced is not None:
                    return raced
            raise
