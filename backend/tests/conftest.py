import os

# In-memory SQLite and no redis for every test; must be set before app modules import settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["GOOGLE_PLACES_API_KEY"] = ""
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest

from app.core.errors import CacheBackendUnavailable
from app.db.base import Base
from app.db.session import SessionLocal, engine
import app.models  # noqa: F401


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSharedBackend:
    """Stands in for RedisBackend: same semantics, optional failure on every call."""

    name = "shared"

    def __init__(self, clock):
        self._clock = clock
        self.entries = {}
        self.fail = False
        self.calls = []

    def _check(self, op):
        self.calls.append(op)
        if self.fail:
            raise CacheBackendUnavailable(f"redis {op} failed: connection refused")

    def _live(self, key):
        entry = self.entries.get(key)
        if entry is None:
            return None
        if entry[1] is not None and self._clock() >= entry[1]:
            del self.entries[key]
            return None
        return entry

    async def get(self, key):
        self._check("get")
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key, value, ttl_seconds):
        self._check("set")
        self.entries[key] = (value, self._clock() + ttl_seconds)

    async def incr(self, key):
        self._check("incr")
        entry = self._live(key)
        count = int(entry[0]) + 1 if entry else 1
        self.entries[key] = (str(count), entry[1] if entry else None)
        return count

    async def expire(self, key, ttl_seconds):
        self._check("expire")
        entry = self._live(key)
        if entry:
            self.entries[key] = (entry[0], self._clock() + ttl_seconds)

    async def ttl(self, key):
        self._check("ttl")
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return int(entry[1] - self._clock())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
