# backend/mentorship/repositories/catalog_repository.py
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ..models.catalog import Recording, RecordingSeries
from .base_repository import BaseRepository


class RecordingRepository(BaseRepository[Recording]):
    def __init__(self, db: Session):
        super().__init__(db, Recording)


class RecordingSeriesRepository(BaseRepository[RecordingSeries]):
    def __init__(self, db: Session):
        super().__init__(db, RecordingSeries)

    def get_with_items(self, series_id: str) -> Optional[RecordingSeries]:
        return (
            self._build_query()
            .options(selectinload(RecordingSeries.items))
            .filter(RecordingSeries.id == series_id)
            .first()
        )
