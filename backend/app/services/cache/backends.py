"""
Key/value backends for cache entries and rate-limit counters.

Two implementations behind one async interface:
- RedisBackend: shared networked store. Expiry is a real key TTL, so every process
  observes the same expiry without coordination.
- LocalBackend: process-local dict. Expiry is applied at read time: touching an expired
  entry acts as a miss and removes it. No other eviction.

CacheBackendSelection picks one of them once per process (see from_settings).
"""
import logging
import threading
import time
from typing import Callable, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.errors import CacheBackendUnavailable

logger = logging.getLogger(__name__)

BACKEND_SHARED = "shared"
BACKEND_LOCAL = "local"


class CacheBackend(Protocol):
    """Operations the limiter and cache need; each maps to one native backend command."""

    name: str

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Atomic set-with-expiry."""
        ...

    async def incr(self, key: str) -> int:
        """Atomic increment; a missing (or expired) key starts at 1 with no expiry."""
        ...

    async def expire(self, key: str, ttl_seconds: int) -> None:
        ...

    async def ttl(self, key: str) -> int | None:
        """Remaining seconds, or None when the key is missing or has no expiry."""
        ...


class RedisBackend:
    """Shared store. Every redis/socket failure surfaces as CacheBackendUnavailable."""

    name = BACKEND_SHARED

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 2.0) -> "RedisBackend":
        client = aioredis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    async def _call(self, op: str, *args, **kwargs):
        try:
            return await getattr(self._client, op)(*args, **kwargs)
        except (RedisError, OSError) as e:
            raise CacheBackendUnavailable(f"redis {op} failed: {e}") from e

    async def get(self, key: str) -> str | None:
        return await self._call("get", key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._call("set", key, value, ex=ttl_seconds)

    async def incr(self, key: str) -> int:
        return int(await self._call("incr", key))

    async def expire(self, key: str, ttl_seconds: int) -> None:
        await self._call("expire", key, ttl_seconds)

    async def ttl(self, key: str) -> int | None:
        remaining = await self._call("ttl", key)
        # -2 = no key, -1 = no expiry
        if remaining is None or int(remaining) < 0:
            return None
        return int(remaining)

    async def aclose(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.debug("redis close failed: %s", e)


class LocalBackend:
    """
    Process-local fallback. Only locally consistent: with several server instances each
    one keeps its own counters.
    """

    name = BACKEND_LOCAL

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        # key -> (value, expires_at epoch or None)
        self._entries: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> tuple[str, float | None] | None:
        """Entry if present and unexpired; an expired entry is removed. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    async def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._entries[key] = ("1", None)
                return 1
            count = int(entry[0]) + 1
            self._entries[key] = (str(count), entry[1])
            return count

    async def expire(self, key: str, ttl_seconds: int) -> None:
        with self._lock:
            entry = self._live(key)
            if entry is not None:
                self._entries[key] = (entry[0], self._clock() + ttl_seconds)

    async def ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return max(0, int(entry[1] - self._clock()))

    def __len__(self) -> int:
        return len(self._entries)


class CacheBackendSelection:
    """
    Backend choice for the whole process, made once at startup from configuration.

    The shared backend is only ever dropped, never re-probed: a construction failure or a
    failed call disables it for the rest of the process lifetime and everything that
    depends on this selection (rate limiter, cache store) moves to the local fallback.
    """

    def __init__(self, local: LocalBackend, shared: CacheBackend | None = None) -> None:
        self.local = local
        self._shared = shared
        self._disabled: CacheBackend | None = None

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.time) -> "CacheBackendSelection":
        local = LocalBackend(clock)
        if not settings.redis_url:
            logger.info("Cache backend: local (REDIS_URL not set)")
            return cls(local)
        try:
            shared = RedisBackend.from_url(
                settings.redis_url,
                socket_timeout=settings.redis_socket_timeout_seconds,
            )
        except (ValueError, RedisError) as e:
            logger.warning("Cache backend: local (redis client construction failed: %s)", e, exc_info=True)
            return cls(local)
        logger.info("Cache backend: shared (redis)")
        return cls(local, shared)

    @property
    def shared(self) -> CacheBackend | None:
        return self._shared

    @property
    def active(self) -> CacheBackend:
        return self._shared if self._shared is not None else self.local

    @property
    def name(self) -> str:
        return self.active.name

    def disable_shared(self, exc: Exception) -> None:
        """Permanently switch this process to the local fallback."""
        if self._shared is None:
            return
        logger.warning("Shared cache backend unavailable, using local fallback for this process: %s", exc)
        self._disabled = self._shared
        self._shared = None

    async def aclose(self) -> None:
        for backend in (self._shared, self._disabled):
            close = getattr(backend, "aclose", None)
            if close is not None:
                await close()
