"""Redis-backed lease around lifecycle passes."""

from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from mentorship.core import pass_lease as lease_module
from mentorship.core.pass_lease import RELEASE_IF_OWNER_LUA, PassLease


def test_fails_open_without_redis():
    with lease_module.pass_lease("minimum_attendance") as acquired:
        assert acquired is True


def test_blocked_when_key_exists():
    client = MagicMock()
    client.set.return_value = None
    with patch.object(lease_module, "lease_client", return_value=client):
        with lease_module.pass_lease("group_reminders", ttl_s=60) as acquired:
            assert acquired is False
    client.set.assert_called_once()
    assert client.set.call_args.kwargs == {"nx": True, "ex": 60}
    client.delete.assert_not_called()
    client.eval.assert_not_called()


def test_released_after_use():
    client = MagicMock()
    client.set.return_value = True
    client.eval.return_value = 1
    with patch.object(lease_module, "lease_client", return_value=client):
        lease = lease_module.pass_lease("auto_completion", ttl_s=60)
        with lease as acquired:
            assert acquired is True
    assert client.set.call_args.args == ("mentorship:lifecycle:auto_completion:lease", lease.token)
    client.eval.assert_called_once_with(
        RELEASE_IF_OWNER_LUA, 1, "mentorship:lifecycle:auto_completion:lease", lease.token
    )
    client.delete.assert_not_called()


def test_released_when_the_pass_raises():
    client = MagicMock()
    client.set.return_value = True
    lease = PassLease(client, "call_reminders", 60)
    with pytest.raises(RuntimeError):
        with lease:
            raise RuntimeError("pass blew up")
    client.eval.assert_called_once_with(RELEASE_IF_OWNER_LUA, 1, lease.key, lease.token)


def test_redis_error_fails_open():
    client = MagicMock()
    client.set.side_effect = RedisConnectionError("reset by peer")
    assert PassLease(client, "call_reminders", 60).acquire() is True


def test_each_run_holds_its_own_token():
    first = PassLease(MagicMock(), "auto_completion", 60)
    second = PassLease(MagicMock(), "auto_completion", 60)
    assert first.key == second.key
    assert first.token != second.token


def test_lease_taken_over_after_expiry_is_left_alone():
    client = MagicMock()
    client.set.return_value = True
    client.eval.return_value = 0  # the key now holds another run's token
    with PassLease(client, "auto_completion", 60) as acquired:
        assert acquired is True
    client.delete.assert_not_called()
