"""
Redis lease around one lifecycle pass.

``SET key value NX EX ttl`` claims the pass so two schedulers cannot run it
concurrently. Without Redis the lease fails open; the nullable marker columns
still keep each row from being handled twice.
"""

from __future__ import annotations

import logging
import threading
from types import TracebackType
from typing import Optional, Type
import uuid

from redis import Redis
from redis.exceptions import RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_client: Optional[Redis] = None
_client_lock = threading.Lock()

# Delete only while the key still holds our token; an expired lease may belong to the next run
RELEASE_IF_OWNER_LUA = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
  return redis.call("DEL", KEYS[1])
end
return 0
"""


def lease_client() -> Optional[Redis]:
    """Shared client, connected lazily; None (and retried next time) while Redis is down."""
    global _client
    with _client_lock:
        if _client is None:
            candidate = Redis.from_url(settings.redis_url, decode_responses=True)
            try:
                candidate.ping()
            except (RedisError, OSError) as exc:
                logger.warning("Pass lease Redis unavailable: %s", exc)
                return None
            _client = candidate
        return _client


class PassLease:
    def __init__(self, client: Optional[Redis], pass_name: str, ttl_s: int):
        self.client = client
        self.pass_name = pass_name
        self.ttl_s = ttl_s
        self.token = uuid.uuid4().hex
        self.acquired = False

    @property
    def key(self) -> str:
        return f"mentorship:lifecycle:{self.pass_name}:lease"

    def acquire(self) -> bool:
        if self.client is None:
            prometheus_metrics.record_lease("acquire", "redis_unavailable")
            return True
        try:
            won = bool(self.client.set(self.key, self.token, nx=True, ex=self.ttl_s))
        except (RedisError, OSError) as exc:
            prometheus_metrics.record_lease("acquire", "error")
            logger.warning("Pass lease acquire failed", extra={"pass_name": self.pass_name, "error": str(exc)})
            return True
        prometheus_metrics.record_lease("acquire", "success" if won else "blocked")
        return won

    def release(self) -> None:
        if self.client is None:
            return
        try:
            deleted = self.client.eval(RELEASE_IF_OWNER_LUA, 1, self.key, self.token)
        except (RedisError, OSError) as exc:
            prometheus_metrics.record_lease("release", "error")
            logger.warning("Pass lease release failed", extra={"pass_name": self.pass_name, "error": str(exc)})
            return
        prometheus_metrics.record_lease("release", "success" if deleted else "not_owner")

    def __enter__(self) -> bool:
        self.acquired = self.acquire()
        return self.acquired

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self.acquired:
            self.release()


def pass_lease(pass_name: str, ttl_s: Optional[int] = None) -> PassLease:
    return PassLease(lease_client(), pass_name, ttl_s or settings.lifecycle_lease_ttl_seconds)
