"""
Cache and counter backends: shared redis when configured, process-local fallback otherwise.
Selected once per process; see CacheBackendSelection.
"""
from app.services.cache.backends import (
    BACKEND_LOCAL,
    BACKEND_SHARED,
    CacheBackend,
    CacheBackendSelection,
    LocalBackend,
    RedisBackend,
)
from app.services.cache.store import CacheStore

__all__ = [
    "BACKEND_LOCAL",
    "BACKEND_SHARED",
    "CacheBackend",
    "CacheBackendSelection",
    "CacheStore",
    "LocalBackend",
    "RedisBackend",
]
