"""
Cache Test Factory

In-memory and failing DistributedBackend doubles, a controllable clock, and
builders for stores and containers wired to them.
"""

from __future__ import annotations

import fnmatch
from typing import Any

import orjson

from agrotrack_cache.core.config.settings import Settings
from agrotrack_cache.core.exceptions import CacheConnectionError
from agrotrack_cache.infrastructure.cache.container import CacheContainer
from agrotrack_cache.infrastructure.cache.store import CacheStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryBackend:
    """
    DistributedBackend double backed by dicts.

    Flip `down` to simulate Redis becoming unreachable: every operation then
    raises CacheConnectionError and ping() returns False.
    """

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock or FakeClock()
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.sets: dict[str, set[str]] = {}
        self.down = False
        self.calls: list[str] = []
        self.ping_count = 0
        self.connected = False

    # -- test helpers ---------------------------------------------------------

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Seed a value the way the store would have serialized it."""
        self.data[key] = orjson.dumps(value).decode()
        if ttl:
            self.expiry[key] = self.clock() + ttl

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.down:
            raise CacheConnectionError(f"Redis {operation} failed: connection refused")

    def _purge(self, key: str) -> None:
        expires_at = self.expiry.get(key)
        if expires_at is not None and self.clock() >= expires_at:
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    # -- DistributedBackend ---------------------------------------------------

    async def connect(self) -> None:
        self._check("connect")
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        self.ping_count += 1
        return not self.down

    async def get(self, key: str) -> str | None:
        self._check("get")
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        self._check("set")
        self.data[key] = value
        if ttl:
            self.expiry[key] = self.clock() + ttl
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        deleted = 0
        for key in keys:
            self._purge(key)
            if self.data.pop(key, None) is not None:
                self.expiry.pop(key, None)
                deleted += 1
            elif self.sets.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def keys(self, pattern: str) -> list[str]:
        self._check("keys")
        for key in list(self.data):
            self._purge(key)
        return [k for k in [*self.data, *self.sets] if fnmatch.fnmatchcase(k, pattern)]

    async def sadd(self, key: str, *members: str) -> int:
        self._check("sadd")
        existing = self.sets.setdefault(key, set())
        before = len(existing)
        existing.update(members)
        return len(existing) - before

    async def smembers(self, key: str) -> set[str]:
        self._check("smembers")
        return set(self.sets.get(key, ()))

    async def exists(self, *keys: str) -> int:
        self._check("exists")
        count = 0
        for key in keys:
            self._purge(key)
            if key in self.data or key in self.sets:
                count += 1
        return count

    async def ttl(self, key: str) -> int:
        self._check("ttl")
        self._purge(key)
        if key not in self.data:
            return -2
        if key not in self.expiry:
            return -1
        return int(self.expiry[key] - self.clock())

    async def expire(self, key: str, ttl: int) -> bool:
        self._check("expire")
        if key not in self.data:
            return False
        self.expiry[key] = self.clock() + ttl
        return True

    async def flushdb(self) -> bool:
        self._check("flushdb")
        self.data.clear()
        self.expiry.clear()
        self.sets.clear()
        return True

    async def info(self) -> dict[str, Any]:
        self._check("info")
        return {"redis_version": "7.2.0", "used_memory_human": "1.00M"}


class FailingBackend(InMemoryBackend):
    """Backend that is unreachable from the start."""

    def __init__(self, clock: FakeClock | None = None):
        super().__init__(clock)
        self.down = True


class CacheTestFactory:
    """Factory for creating cache test objects."""

    @staticmethod
    def settings(**overrides: Any) -> Settings:
        """Settings for tests: no startup warmup, test environment."""
        values = {
            "ENVIRONMENT": "test",
            "CACHE_WARMUP_ON_STARTUP": False,
            "REDIS_RECONNECT_INTERVAL": 30,
            "LOG_FORMAT": "console",
        }
        values.update(overrides)
        return Settings(**values)

    @staticmethod
    def store(backend: InMemoryBackend | None = None, clock: FakeClock | None = None, **kwargs: Any) -> CacheStore:
        """Store over a backend double (local-only when backend is None)."""
        clock = clock or (backend.clock if backend is not None else FakeClock())
        return CacheStore(backend=backend, clock=clock, **kwargs)

    @staticmethod
    def container(
        backend: InMemoryBackend | None = None,
        settings: Settings | None = None,
        single_flight: bool = False,
    ) -> CacheContainer:
        """Container whose store sits on a backend double."""
        settings = settings or CacheTestFactory.settings()
        store = CacheTestFactory.store(
            backend,
            default_ttl=settings.cache.CACHE_DEFAULT_TTL,
            reconnect_interval=settings.redis.REDIS_RECONNECT_INTERVAL,
        )
        return CacheContainer(store, settings=settings, single_flight=single_flight)
