"""
JSON cache for expensive provider calls (place details, photo URLs).

Entries live only in the shared backend. Without one (not configured, or disabled after a
failure) every read is a miss and writes are dropped: no per-process payload map, so
memory stays bounded no matter how many places a server instance sees.
"""
import json
import logging
from typing import Any

from app.core.errors import CacheBackendUnavailable
from app.services.cache.backends import CacheBackendSelection

logger = logging.getLogger(__name__)


class CacheStore:
    def __init__(self, selection: CacheBackendSelection) -> None:
        self._selection = selection

    @property
    def enabled(self) -> bool:
        return self._selection.shared is not None

    async def get_json(self, key: str) -> Any | None:
        """Cached payload or None on miss, expiry, undecodable value or backend failure."""
        backend = self._selection.shared
        if backend is None:
            return None
        try:
            raw = await backend.get(key)
        except CacheBackendUnavailable as e:
            self._selection.disable_shared(e)
            return None
        if raw is None:
            logger.debug("cache miss %s", key)
            return None
        try:
            value = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("cache entry %s is not valid JSON; treating as miss", key)
            return None
        logger.debug("cache hit %s", key)
        return value

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """One atomic SET with expiry; the payload must be complete before this is called."""
        backend = self._selection.shared
        if backend is None:
            return
        try:
            await backend.set(key, json.dumps(value), ttl_seconds)
        except CacheBackendUnavailable as e:
            self._selection.disable_shared(e)
