# backend/mentorship/schemas/webhook.py
from typing import Optional

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the payment processor."""

    status: str  # processed | duplicate | ignored
    event_id: str
    purpose: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
