"""
Payout Initiator.

Applies the revenue split, attempts a Stripe Connect transfer to the mentor,
and writes a MENTOR_PAYOUT ledger row whatever the transfer outcome. A failed
transfer is recorded as FAILED for reconciliation and never raised to the
caller, so the domain action that triggered the payout stays complete.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Tuple

import stripe
from sqlalchemy.orm import Session

from ..core.constants import MENTOR_SHARE_PERCENT
from ..models.payment import Payment, PaymentStatus, PaymentType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .stripe_service import StripeService, to_minor_units

CENT = Decimal("0.01")


def split_revenue(gross: Decimal) -> Tuple[Decimal, Decimal]:
    """Return ``(mentor_share, platform_fee)`` for a gross amount, rounded to cents."""
    gross = Decimal(gross).quantize(CENT, rounding=ROUND_HALF_UP)
    mentor_share = (gross * MENTOR_SHARE_PERCENT / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
    return mentor_share, gross - mentor_share


def payout_idempotency_key(source_type: str, source_id: str) -> str:
    return f"payout:{source_type}:{source_id}"


@dataclass
class PayoutResult:
    status: str  # success | failed | skipped | duplicate
    amount: Decimal
    payment: Optional[Payment] = None
    reason: Optional[str] = None


class PayoutService(BaseService):
    def __init__(self, db: Session, stripe_service: Optional[StripeService] = None):
        super().__init__(db)
        self.stripe_service = stripe_service or StripeService(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @BaseService.measure_operation("initiate_payout")
    def initiate_payout(
        self,
        *,
        mentor_id: str,
        amount: Decimal,
        source_type: str,
        source_id: str,
        transfer_group: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PayoutResult:
        """
        Transfer ``amount`` (already the mentor's share) and record the ledger row.

        Skips without a ledger row when the amount is not positive or the
        mentor has no verified payout destination. Does not commit.
        """
        amount = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
        if amount <= 0:
            prometheus_metrics.record_payout(source_type, "skipped")
            return PayoutResult(status="skipped", amount=amount, reason="no_amount")

        profile = self.user_repository.get_mentor_profile(mentor_id)
        destination = profile.payout_destination if profile else None
        if not destination:
            self.logger.info(
                "Skipping payout: mentor has no verified payout destination",
                extra={"mentor_id": mentor_id, "source_type": source_type, "source_id": source_id},
            )
            prometheus_metrics.record_payout(source_type, "skipped")
            return PayoutResult(status="skipped", amount=amount, reason="no_payout_destination")

        idempotency_key = payout_idempotency_key(source_type, source_id)
        existing = self.payment_repository.get_by_idempotency_key(idempotency_key)
        if existing is not None:
            return PayoutResult(status="duplicate", amount=amount, payment=existing)

        transfer_metadata = {"mentor_id": mentor_id, "source_type": source_type, "source_id": source_id}
        transfer_metadata.update(metadata or {})

        transfer_id: Optional[str] = None
        failure: Optional[str] = None
        try:
            transfer_id = self.stripe_service.create_transfer(
                amount_cents=to_minor_units(amount),
                destination=destination,
                transfer_group=transfer_group,
                metadata=transfer_metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            failure = str(exc.user_message or exc)
            self.logger.error(
                "Payout transfer failed",
                extra={
                    "mentor_id": mentor_id,
                    "source_type": source_type,
                    "source_id": source_id,
                    "amount": str(amount),
                    "error": failure,
                },
            )

        payment = self.payment_repository.create(
            user_id=mentor_id,
            type=PaymentType.MENTOR_PAYOUT.value,
            status=PaymentStatus.FAILED.value if failure else PaymentStatus.COMPLETED.value,
            amount=amount,
            currency=self.stripe_service.currency,
            stripe_transfer_id=transfer_id,
            idempotency_key=idempotency_key,
            related_entity_type=source_type,
            related_entity_id=source_id,
            failure_reason=failure,
            details={"transfer_group": transfer_group},
        )
        outcome = "failed" if failure else "success"
        prometheus_metrics.record_payout(source_type, outcome)
        return PayoutResult(status=outcome, amount=amount, payment=payment, reason=failure)
