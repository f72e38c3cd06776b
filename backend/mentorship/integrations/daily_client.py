"""Daily.co video room integration client.

Creates private, time-bounded rooms for calls and group sessions through the
Daily REST API. Rooms expire on their own (``exp``) and eject everyone when
they do, so no teardown call is needed.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol, cast

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class DailyError(RuntimeError):
    """Raised when the Daily API responds with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class VideoRoomClient(Protocol):
    def create_room(
        self,
        *,
        call_id: str,
        expires_in_minutes: int,
        max_participants: int,
        enable_chat: bool = True,
        enable_screenshare: bool = True,
    ) -> str:
        ...


def room_name(call_id: str) -> str:
    return f"call-{call_id}"


class DailyClient:
    """HTTP client for the Daily REST API."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr,
        base_url: str = "https://api.daily.co/v1",
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request to the Daily API."""
        if not self._api_key:
            raise DailyError("Video conferencing is not configured")

        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.request(method, url, headers=headers, json=json_body)
        except httpx.TransportError as exc:
            logger.error("Daily API unreachable for %s %s: %s", method, path, exc)
            raise DailyError(message=f"Daily API unreachable: {exc}", status_code=None) from exc

        if response.status_code >= 400:
            error_body: dict[str, Any] = {}
            try:
                parsed_body = response.json()
                if isinstance(parsed_body, dict):
                    error_body = parsed_body
                else:
                    error_body = {"raw": response.text[:500]}
            except ValueError:
                error_body = {"raw": response.text[:500]}

            message = error_body.get("error") or error_body.get("info") or "Failed to create video room"
            logger.error(
                "Daily API error %s for %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:500],
            )
            raise DailyError(message=message, status_code=response.status_code, details=error_body)

        return cast(dict[str, Any], response.json())

    def create_room(
        self,
        *,
        call_id: str,
        expires_in_minutes: int,
        max_participants: int,
        enable_chat: bool = True,
        enable_screenshare: bool = True,
    ) -> str:
        """Create a private room named ``call-<call_id>`` and return its URL."""
        body: dict[str, Any] = {
            "name": room_name(call_id),
            "privacy": "private",
            "properties": {
                "exp": int(time.time()) + expires_in_minutes * 60,
                "enable_chat": enable_chat,
                "enable_screenshare": enable_screenshare,
                "enable_knocking": False,
                "start_video_off": False,
                "start_audio_off": False,
                "max_participants": max_participants,
                "eject_at_room_exp": True,
            },
        }
        data = self._request("POST", "rooms", json_body=body)
        url = data.get("url")
        if not url:
            raise DailyError("Daily API response did not include a room url", details=data)
        return str(url)


class FakeDailyClient:
    """In-memory stub for testing/non-production environments."""

    def __init__(self, **kwargs: Any) -> None:
        self._calls: list[dict[str, Any]] = []
        self._errors: dict[str, DailyError] = {}

    @property
    def calls(self) -> list[dict[str, Any]]:
        return list(self._calls)

    def set_error(self, method: str, error: DailyError) -> None:
        """Inject a method-specific error for deterministic failure testing."""
        self._errors[method] = error

    def clear_errors(self) -> None:
        self._errors.clear()

    def create_room(self, *, call_id: str, **kwargs: Any) -> str:
        self._calls.append({"method": "create_room", "call_id": call_id, **kwargs})
        error = self._errors.get("create_room")
        if error is not None:
            raise error
        return f"https://fake.daily.co/{room_name(call_id)}"
