# backend/mentorship/routes/internal.py
"""Internal trigger for the session lifecycle engine."""

import asyncio
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from ..api.dependencies import get_lifecycle_service
from ..core.config import settings
from ..schemas.lifecycle import LifecycleRunResponse
from ..services.session_lifecycle_service import SessionLifecycleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/cron", tags=["internal"], include_in_schema=False)


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    secret = settings.cron_secret.get_secret_value()
    if not secret:
        logger.error("Lifecycle trigger called but CRON_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cron secret not configured")
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post(
    "/session-lifecycle",
    response_model=LifecycleRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_session_lifecycle(
    lifecycle_service: SessionLifecycleService = Depends(get_lifecycle_service),
) -> LifecycleRunResponse:
    summary = await asyncio.to_thread(lifecycle_service.run_all)
    return LifecycleRunResponse(**summary)
