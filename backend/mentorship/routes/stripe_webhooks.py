# backend/mentorship/routes/stripe_webhooks.py
"""
Stripe Webhook Endpoint

Checkout completions fan out by the ``purpose`` metadata tag to the purchase,
call and group-session handlers. The signature is verified before anything is
logged; a verified event is processed at most once per event id.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..api.dependencies import get_payment_event_router
from ..core.exceptions import DomainException
from ..schemas.webhook import WebhookResponse
from ..services.payment_event_router import PaymentEventRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/stripe", tags=["stripe-webhooks"])


@router.post("/checkout-events", response_model=WebhookResponse)
async def handle_checkout_events(
    request: Request,
    event_router: PaymentEventRouter = Depends(get_payment_event_router),
) -> WebhookResponse:
    """
    Handle ``checkout.session.completed`` events.

    Returns 400 for a bad signature or missing metadata, 409 while the same
    event is being processed elsewhere, and 500 when a handler failed so that
    Stripe redelivers.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        result = await asyncio.to_thread(
            event_router.handle_webhook, payload, signature, dict(request.headers)
        )
    except DomainException:
        raise
    except Exception as e:
        logger.error(f"Error processing Stripe webhook: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process webhook"
        )
    return WebhookResponse(**result)
