# backend/mentorship/repositories/payment_repository.py
"""Data access for the payment ledger."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.payment import Payment, PaymentType
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_by_event_id(self, stripe_event_id: str) -> Optional[Payment]:
        return self.find_one_by(stripe_event_id=stripe_event_id)

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Payment]:
        return self.find_one_by(idempotency_key=idempotency_key)

    def get_purchase_for_entity(
        self, *, user_id: str, entity_type: str, entity_id: str, payment_type: PaymentType
    ) -> Optional[Payment]:
        query = (
            self._build_query()
            .filter(
                Payment.user_id == user_id,
                Payment.related_entity_type == entity_type,
                Payment.related_entity_id == entity_id,
                Payment.type == payment_type.value,
            )
            .order_by(Payment.created_at.desc())
        )
        return query.first()
