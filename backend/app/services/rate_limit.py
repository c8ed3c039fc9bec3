"""
Fixed-window submission rate limit per reporter identity.

Policy: at most N touches per key within a window of W seconds. The first touch creates the
counter at 1 and sets the backend expiry to W; later touches increment it. Once the backend
expires the key, the next touch starts a fresh window. Every check consumes a slot; there
is no side-effect-free peek.

Backend failure: when the shared store raises, the process switches to the local fallback
for good (CacheBackendSelection.disable_shared) and the same check is answered there. The
limiter never fails open or closed because of connectivity.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from app.core.constants import RATE_LIMIT_KEY
from app.core.errors import CacheBackendUnavailable
from app.services.cache.backends import CacheBackend, CacheBackendSelection

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime


def limiter_identity(device_id: str | None, ip_address: str | None) -> str:
    """device:<id> when the client sent a device id, else ip:<address>."""
    device = (device_id or "").strip()
    if device:
        return f"device:{device}"
    ip = (ip_address or "").strip() or UNKNOWN_IP
    return f"ip:{ip}"


class RateLimiter:
    def __init__(
        self,
        selection: CacheBackendSelection,
        *,
        max_requests: int = 3,
        window_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._selection = selection
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    async def check(self, identity: str) -> RateLimitResult:
        backend = self._selection.active
        try:
            return await self._check(backend, identity)
        except CacheBackendUnavailable as e:
            if backend is self._selection.local:
                raise
            self._selection.disable_shared(e)
            return await self._check(self._selection.local, identity)

    async def _check(self, backend: CacheBackend, identity: str) -> RateLimitResult:
        key = RATE_LIMIT_KEY.format(identity=identity)
        now = self._clock()
        count = await backend.incr(key)
        if count == 1:
            await backend.expire(key, self.window_seconds)
            return RateLimitResult(True, self.max_requests - 1, self._at(now + self.window_seconds))

        ttl = await backend.ttl(key)
        if ttl is None:
            # Counter without expiry (writer died between INCR and EXPIRE): window restarts now
            await backend.expire(key, self.window_seconds)
            ttl = self.window_seconds
        reset_at = self._at(now + ttl)
        if count > self.max_requests:
            logger.info("Rate limit hit for %s (count=%s)", identity, count)
            return RateLimitResult(False, 0, reset_at)
        return RateLimitResult(True, self.max_requests - count, reset_at)

    @staticmethod
    def _at(epoch_seconds: float) -> datetime:
        return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
