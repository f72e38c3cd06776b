"""Room expiry policy and best-effort provisioning."""

from datetime import datetime, timezone

from mentorship.integrations.daily_client import DailyError, FakeDailyClient
from mentorship.services.video_service import VideoRoomService, compute_room_expiry_minutes, group_room_id

UTC = timezone.utc
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def test_expiry_is_end_plus_two_hours_from_now():
    start = datetime(2026, 6, 1, 15, 0, tzinfo=UTC)
    # 3h until start + 1h session + 2h padding
    assert compute_room_expiry_minutes(start, 60, NOW) == 360


def test_expiry_has_a_floor():
    long_ago = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)
    assert compute_room_expiry_minutes(long_ago, 30, NOW) == 60


def test_try_provision_returns_none_on_provider_error():
    client = FakeDailyClient()
    client.set_error("create_room", DailyError("down", 503))
    service = VideoRoomService(client=client)
    assert (
        service.try_provision(
            logical_id=group_room_id("s1"), scheduled_start=NOW, duration_minutes=60, max_participants=9, now=NOW
        )
        is None
    )


def test_provision_passes_expiry_to_client():
    client = FakeDailyClient()
    url = VideoRoomService(client=client).provision(
        logical_id="c1",
        scheduled_start=datetime(2026, 6, 1, 13, 0, tzinfo=UTC),
        duration_minutes=30,
        max_participants=2,
        now=NOW,
    )
    assert url == "https://fake.daily.co/call-c1"
    assert client.calls[0]["expires_in_minutes"] == 210
