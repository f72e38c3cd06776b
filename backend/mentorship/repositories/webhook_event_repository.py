# backend/mentorship/repositories/webhook_event_repository.py
"""Data access for the webhook event ledger."""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.webhook_event import CLAIMABLE_LEDGER_STATUSES, LedgerStatus, WebhookEvent
from .base_repository import BaseRepository


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    def __init__(self, db: Session):
        super().__init__(db, WebhookEvent)

    def get_delivery(self, source: str, event_id: str) -> Optional[WebhookEvent]:
        return self.find_one_by(source=source, event_id=event_id)

    def claim(self, row_id: str, *, now: datetime, stale_before: datetime) -> bool:
        """
        Move a claimable row to PROCESSING in one UPDATE.

        A row still PROCESSING under a claim older than ``stale_before`` is
        taken over. Returns False when a live worker holds the row or it
        already settled.
        """
        abandoned = and_(
            WebhookEvent.status == LedgerStatus.PROCESSING.value,
            or_(WebhookEvent.claimed_at.is_(None), WebhookEvent.claimed_at < stale_before),
        )
        try:
            result = self.db.execute(
                update(WebhookEvent)
                .where(
                    WebhookEvent.id == row_id,
                    or_(WebhookEvent.status.in_(CLAIMABLE_LEDGER_STATUSES), abandoned),
                )
                .values(status=LedgerStatus.PROCESSING.value, claimed_at=now, error=None, settled_at=None)
                .execution_options(synchronize_session=False)
            )
            self.db.flush()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to claim webhook event %s: %s", row_id, exc)
            raise RepositoryException(f"Failed to claim webhook event: {exc}") from exc
        return bool(result.rowcount)
