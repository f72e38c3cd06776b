"""VideoRoomService: allocates time-bounded rooms for calls and group sessions.

Room expiry is ``scheduled_end + 2h`` measured from "now", never less than
60 minutes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
import math
from typing import Optional, Union

from ..core.config import settings
from ..core.constants import ROOM_EXPIRY_PADDING_MINUTES, ROOM_MIN_EXPIRY_MINUTES
from ..core.timezone_utils import ensure_utc
from ..integrations.daily_client import DailyClient, DailyError, FakeDailyClient

logger = logging.getLogger(__name__)

VideoClient = Union[DailyClient, FakeDailyClient]


def build_video_room_client() -> VideoClient:
    if not settings.video_rooms_enabled:
        return FakeDailyClient()
    api_key = settings.daily_api_key.get_secret_value().strip()
    if not api_key:
        logger.warning("Video rooms enabled but DAILY_API_KEY is not configured; room creation will fail")
    return DailyClient(api_key=api_key, base_url=settings.daily_api_base_url)


def compute_room_expiry_minutes(scheduled_start: datetime, duration_minutes: int, now: datetime) -> int:
    scheduled_end = ensure_utc(scheduled_start) + timedelta(minutes=duration_minutes)
    expires_at = scheduled_end + timedelta(minutes=ROOM_EXPIRY_PADDING_MINUTES)
    remaining = (expires_at - ensure_utc(now)).total_seconds() / 60
    return max(ROOM_MIN_EXPIRY_MINUTES, math.ceil(remaining))


def group_room_id(session_id: str) -> str:
    return f"group-{session_id}"


class VideoRoomService:
    """Thin policy layer over the video provider client."""

    def __init__(self, client: Optional[VideoClient] = None) -> None:
        self.client = client or build_video_room_client()
        self.logger = logging.getLogger(self.__class__.__name__)

    def provision(
        self,
        *,
        logical_id: str,
        scheduled_start: datetime,
        duration_minutes: int,
        max_participants: int,
        now: datetime,
    ) -> str:
        """Create a room and return its URL. Raises DailyError on provider failure."""
        expiry = compute_room_expiry_minutes(scheduled_start, duration_minutes, now)
        return self.client.create_room(
            call_id=logical_id,
            expires_in_minutes=expiry,
            max_participants=max_participants,
            enable_chat=True,
            enable_screenshare=True,
        )

    def try_provision(
        self,
        *,
        logical_id: str,
        scheduled_start: datetime,
        duration_minutes: int,
        max_participants: int,
        now: datetime,
    ) -> Optional[str]:
        """Best-effort variant: failures are logged and reported as ``None``."""
        try:
            return self.provision(
                logical_id=logical_id,
                scheduled_start=scheduled_start,
                duration_minutes=duration_minutes,
                max_participants=max_participants,
                now=now,
            )
        except DailyError as exc:
            self.logger.error(
                "Video room provisioning failed",
                extra={"logical_id": logical_id, "status_code": exc.status_code, "error": exc.message},
            )
            return None
