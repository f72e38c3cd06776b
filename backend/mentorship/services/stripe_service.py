"""
Stripe Service for the mentorship platform.

Wraps the three Stripe calls the booking core needs: webhook signature
verification, Connect transfers to mentors, and refunds by payment intent.
Amounts cross this boundary in minor units (cents).
"""

from decimal import ROUND_HALF_UP, Decimal
import json
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import WebhookIntegrityException
from .base import BaseService


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_cents: Optional[int]) -> Decimal:
    return (Decimal(amount_cents or 0) / 100).quantize(Decimal("0.01"))


class StripeService(BaseService):
    """Service layer for Stripe Connect transfers, refunds and webhook verification."""

    def __init__(self, db: Session):
        super().__init__(db)
        secret_key = settings.stripe_secret_key.get_secret_value()
        if secret_key:
            stripe.api_key = secret_key
        self.currency = settings.stripe_currency

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook signature and return the decoded event.

        Raises:
            WebhookIntegrityException: missing/invalid signature or unparsable payload
        """
        if not signature:
            raise WebhookIntegrityException("Missing stripe-signature header")
        secret_value = settings.stripe_webhook_secret.get_secret_value()
        if not secret_value:
            raise WebhookIntegrityException("Webhook secret not configured")

        try:
            stripe.Webhook.construct_event(payload, signature, secret_value)
        except stripe.SignatureVerificationError as exc:
            self.logger.warning("Invalid webhook signature")
            raise WebhookIntegrityException("Invalid webhook signature") from exc
        except ValueError as exc:
            raise WebhookIntegrityException("Invalid webhook payload") from exc

        try:
            event = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise WebhookIntegrityException("Invalid webhook payload") from exc
        if not isinstance(event, dict) or not event.get("id"):
            raise WebhookIntegrityException("Webhook event has no id")
        return event

    @BaseService.measure_operation("create_transfer")
    def create_transfer(
        self,
        *,
        amount_cents: int,
        destination: str,
        transfer_group: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> str:
        """Create a Connect transfer and return its id. Raises ``stripe.StripeError``."""
        transfer = stripe.Transfer.create(
            amount=amount_cents,
            currency=self.currency,
            destination=destination,
            transfer_group=transfer_group,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        self.logger.info(
            "Issued transfer",
            extra={"transfer_group": transfer_group, "amount_cents": amount_cents},
        )
        return str(transfer["id"])

    @BaseService.measure_operation("create_refund")
    def create_refund(
        self,
        *,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Refund a payment intent (fully unless ``amount_cents`` is given). Raises ``stripe.StripeError``."""
        params: Dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": "requested_by_customer",
            "metadata": metadata or {},
            "idempotency_key": idempotency_key,
        }
        if amount_cents is not None:
            params["amount"] = amount_cents
        refund = stripe.Refund.create(**params)
        return str(refund["id"])
