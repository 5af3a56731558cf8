"""
Dual-Backend Cache Store

Architecture:
    CacheStore (Public API)
        ├── DistributedBackend (Redis, preferred while reachable)
        ├── LocalStorage (In-process fallback map)
        └── CacheStatistics (Hit/miss counters)

Algorithm (every operation):
    1. If the distributed backend is usable, run the operation there
    2. On any backend failure, log a warning and answer from the local map
    3. A connectivity failure marks the backend unavailable; it is re-checked
       with PING at most once per reconnect interval

The store is the single point where "Redis may be down" turns into "the
cache is colder than usual". Callers never see a backend failure.

Values are serialized with orjson before they reach either tier, so a value
round-trips identically regardless of which tier served it.

Author: System Architect
Date: 2025-12-09
"""

from __future__ import annotations

import fnmatch
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson

from agrotrack_cache.core.config.constants import DEFAULT_CACHE_TTL, CacheBackendKind
from agrotrack_cache.core.exceptions import CacheConnectionError, CacheError, CacheSerializationError
from agrotrack_cache.core.interfaces.cache import DistributedBackend
from agrotrack_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

Clock = Callable[[], float]

# Marker returned by _call_backend when the local map has to answer
_FALLBACK = object()


# =============================================================================
# LAYER 1: LOCAL STORAGE
# Per-process map used whenever Redis is disabled or unreachable
# =============================================================================


class LocalStorage:
    """
    In-process key/value map with per-entry expiry and tag sets.

    STAGE-CACHE.LOCAL: Local fallback tier

    Expiry is lazy: an expired entry is evicted when it is next read or
    listed. There is no background sweep.

    The map is per process and diverges between workers; no cross-process
    coordination is attempted. All methods are synchronous, so individual
    operations are atomic with respect to each other on the event loop.
    """

    def __init__(self, clock: Clock = time.monotonic):
        """
        Args:
            clock: Monotonic seconds source (injectable for expiry tests)
        """
        self._clock = clock
        self._entries: dict[str, tuple[str, float | None]] = {}
        self._sets: dict[str, set[str]] = {}

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = (value, expires_at)

    def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                del self._entries[key]
                deleted += 1
            elif key in self._sets:
                del self._sets[key]
                deleted += 1
        return deleted

    def keys(self, pattern: str = "*") -> list[str]:
        """Live keys (values and sets) matching a glob pattern."""
        matched = [k for k in list(self._entries) if fnmatch.fnmatchcase(k, pattern) and self._live(k)]
        matched.extend(k for k in self._sets if fnmatch.fnmatchcase(k, pattern))
        return matched

    def exists(self, key: str) -> bool:
        return self._live(key) is not None or key in self._sets

    def ttl(self, key: str) -> int | None:
        """Remaining seconds, None when the key is missing or never expires."""
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return max(0, math.ceil(entry[1] - self._clock()))

    def expire(self, key: str, ttl: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self._entries[key] = (entry[0], self._clock() + ttl)
        return True

    def sadd(self, key: str, *members: str) -> int:
        existing = self._sets.setdefault(key, set())
        before = len(existing)
        existing.update(members)
        return len(existing) - before

    def smembers(self, key: str) -> set[str]:
        return set(self._sets.get(key, ()))

    def clear(self) -> None:
        self._entries.clear()
        self._sets.clear()

    def size(self) -> int:
        """Number of stored entries, expired-but-unread ones included."""
        return len(self._entries) + len(self._sets)


# =============================================================================
# LAYER 2: STATISTICS
# =============================================================================


@dataclass
class CacheStatistics:
    """
    Process-wide hit/miss counters.

    Best-effort, in-memory telemetry: lost on restart, reset on demand.
    """

    hits: int = 0
    misses: int = 0
    last_reset: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage (0-100), two decimals."""
        if self.total_requests == 0:
            return 0.0
        return round(self.hits / self.total_requests * 100, 2)

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.last_reset = datetime.now(timezone.utc)

    def snapshot(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_requests": self.total_requests,
            "hit_rate": self.hit_rate,
            "last_reset": self.last_reset.isoformat(),
        }


# =============================================================================
# LAYER 3: PUBLIC API
# =============================================================================


class CacheStore:
    """
    Uniform cache API over Redis with local fallback.

    Usage:
        store = CacheStore(RedisClient(settings))
        await store.connect()

        await store.set("plant:42", {"name": "Fern"}, ttl=1800)
        plant = await store.get("plant:42")

        await store.delete_by_pattern("plant:*")
        await store.close()

    Passing backend=None (DISABLE_REDIS) runs the store in local-only mode.
    """

    def __init__(
        self,
        backend: DistributedBackend | None = None,
        default_ttl: int | None = DEFAULT_CACHE_TTL,
        reconnect_interval: float = 30.0,
        local: LocalStorage | None = None,
        clock: Clock = time.monotonic,
    ):
        """
        Initialize cache store.

        STAGE-CACHE.0: Store initialization

        Args:
            backend: Distributed backend, or None for local-only mode
            default_ttl: TTL applied on the distributed tier when set() gets none
            reconnect_interval: Minimum seconds between reconnect attempts on a down backend
            local: Local fallback map (a fresh one by default)
            clock: Monotonic seconds source for reconnect scheduling
        """
        self._backend = backend
        self._default_ttl = default_ttl
        self._reconnect_interval = reconnect_interval
        self._clock = clock
        self._local = local or LocalStorage(clock=clock)
        self._stats = CacheStatistics()

        self._available = False
        self._last_reconnect_attempt: float | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Connect the distributed backend.

        STAGE-CACHE.1: Backend connection

        A failed connect leaves the store in local-only mode; it never raises.
        """
        if self._backend is None:
            log_stage(logger, "CACHE.1", "Distributed cache disabled, using local map only")
            return

        try:
            await self._backend.connect()
            self._available = True
            log_stage(logger, "CACHE.1", "Distributed cache connected")
        except CacheError as e:
            self._mark_unavailable()
            log_stage(
                logger,
                "CACHE.1",
                "Distributed cache unavailable, falling back to local map",
                level="warning",
                error=str(e),
            )

    async def close(self) -> None:
        """
        Disconnect the distributed backend.

        STAGE-CACHE.2: Backend shutdown
        """
        if self._backend is None:
            return
        try:
            await self._backend.disconnect()
        except CacheError as e:
            logger.warning("Error while closing distributed cache", stage="CACHE.2", error=str(e))
        self._available = False

    # -------------------------------------------------------------------------
    # Backend selection
    # -------------------------------------------------------------------------

    @property
    def local(self) -> LocalStorage:
        return self._local

    @property
    def active_backend(self) -> CacheBackendKind:
        """Tier that answers the next operation, as last observed."""
        return CacheBackendKind.DISTRIBUTED if self._available else CacheBackendKind.LOCAL

    def _mark_unavailable(self) -> None:
        self._available = False
        self._last_reconnect_attempt = self._clock()

    def _mark_recovered(self) -> None:
        """Switch back to Redis and drop what the local map collected meanwhile."""
        self._available = True
        self._local.clear()
        log_stage(logger, "CACHE.1", "Distributed cache reachable again, local map cleared")

    async def _backend_usable(self) -> bool:
        if self._backend is None:
            return False
        if self._available:
            return True
        last = self._last_reconnect_attempt
        if last is not None and self._clock() - last < self._reconnect_interval:
            return False

        self._last_reconnect_attempt = self._clock()
        if await self._backend.ping():
            self._mark_recovered()
        return self._available

    async def _call_backend(self, operation: str, *args: Any, **log_context: Any) -> Any:
        """
        Run one backend operation, or return _FALLBACK when the local map
        must answer instead.
        """
        if not await self._backend_usable():
            return _FALLBACK

        try:
            return await getattr(self._backend, operation)(*args)
        except CacheError as e:
            if isinstance(e, CacheConnectionError):
                self._mark_unavailable()
            logger.warning(
                "Distributed cache operation failed, using local map",
                stage="CACHE.FALLBACK",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **log_context,
            )
            return _FALLBACK

    # -------------------------------------------------------------------------
    # Core Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """
        Get a value.

        STAGE-CACHE.GET: Lookup (records a hit or a miss)

        Returns:
            Deserialized value, or None when missing, expired or undecodable
        """
        raw = await self._call_backend("get", key, key=key)
        if raw is _FALLBACK:
            raw = self._local.get(key)

        if raw is None:
            self._stats.record_miss()
            logger.debug("Cache miss", stage="CACHE.GET", key=key)
            return None

        try:
            value = self._decode(key, raw)
        except CacheSerializationError as e:
            self._stats.record_miss()
            logger.error("Cached value could not be decoded", stage="CACHE.GET", key=key, error=e.message)
            return None

        self._stats.record_hit()
        logger.debug("Cache hit", stage="CACHE.GET", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store a value.

        STAGE-CACHE.SET: Population

        Args:
            key: Cache key
            value: Any orjson-serializable value
            ttl: Seconds to live (the store default when None, on both tiers)

        Returns:
            False only when the value cannot be serialized
        """
        try:
            payload = self._encode(key, value)
        except CacheSerializationError as e:
            logger.error("Value could not be serialized, not cached", stage="CACHE.SET", key=key, error=e.message)
            return False

        ttl = ttl if ttl is not None else self._default_ttl
        result = await self._call_backend("set", key, payload, ttl, key=key)
        if result is _FALLBACK:
            self._local.set(key, payload, ttl)

        logger.debug("Cache set", stage="CACHE.SET", key=key, ttl=ttl)
        return True

    async def delete(self, *keys: str) -> int:
        """
        Delete keys. Missing keys are a no-op.

        STAGE-CACHE.DEL: Invalidation

        Local copies are removed as well, so an entry written during an
        outage cannot resurface in the next one.

        Returns:
            Number of keys that existed
        """
        if not keys:
            return 0
        local_deleted = self._local.delete(*keys)
        result = await self._call_backend("delete", *keys, keys=list(keys))
        if result is _FALLBACK:
            result = local_deleted
        return result

    async def keys(self, pattern: str = "*") -> list[str]:
        """List keys matching a glob pattern on the active tier."""
        result = await self._call_backend("keys", pattern, pattern=pattern)
        if result is _FALLBACK:
            result = self._local.keys(pattern)
        return result

    async def delete_by_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        STAGE-CACHE.DEL: Pattern invalidation

        Returns:
            Number of keys deleted (0 when nothing matches)
        """
        matched = await self.keys(pattern)
        # Outage leftovers the distributed tier never saw
        self._local.delete(*(key for key in self._local.keys(pattern) if key not in matched))
        if not matched:
            return 0

        deleted = await self.delete(*matched)
        log_stage(logger, "CACHE.DEL", "Pattern invalidated", pattern=pattern, deleted=deleted)
        return deleted

    # -------------------------------------------------------------------------
    # Set Operations (tag index)
    # -------------------------------------------------------------------------

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        result = await self._call_backend("sadd", key, *members, key=key)
        if result is _FALLBACK:
            result = self._local.sadd(key, *members)
        return result

    async def smembers(self, key: str) -> set[str]:
        result = await self._call_backend("smembers", key, key=key)
        if result is _FALLBACK:
            result = self._local.smembers(key)
        return set(result)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    async def exists(self, key: str) -> bool:
        result = await self._call_backend("exists", key, key=key)
        if result is _FALLBACK:
            return self._local.exists(key)
        return result > 0

    async def ttl(self, key: str) -> int | None:
        """Remaining seconds to live; None when missing or without expiry."""
        result = await self._call_backend("ttl", key, key=key)
        if result is _FALLBACK:
            return self._local.ttl(key)
        return result if result >= 0 else None

    async def expire(self, key: str, ttl: int) -> bool:
        result = await self._call_backend("expire", key, ttl, key=key)
        if result is _FALLBACK:
            return self._local.expire(key, ttl)
        return bool(result)

    async def is_healthy(self) -> bool:
        """
        Whether the distributed backend is reachable right now.

        Always False in local-only mode.
        """
        if self._backend is None:
            return False
        healthy = await self._backend.ping()
        if healthy and not self._available:
            self._mark_recovered()
        elif self._available:
            self._mark_unavailable()
        return healthy

    async def info(self) -> dict[str, Any] | None:
        """Backend diagnostic info, None when unreachable."""
        result = await self._call_backend("info")
        return None if result is _FALLBACK else result

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def flush_all(self) -> bool:
        """
        Clear both tiers and reset statistics.

        STAGE-CACHE.FLUSH: Administrative flush (never used by request handling)

        Returns:
            False when the distributed tier could not be flushed
        """
        flushed = True
        if self._backend is not None:
            flushed = await self._call_backend("flushdb") is not _FALLBACK

        self._local.clear()
        self._stats.reset()

        log_stage(logger, "CACHE.FLUSH", "Cache flushed", distributed_flushed=flushed)
        return flushed

    def get_stats(self) -> dict[str, Any]:
        """
        Statistics snapshot.

        Returns:
            Dict with hits, misses, total_requests, hit_rate (percent),
            last_reset (ISO-8601 UTC) and the active backend
        """
        return {**self._stats.snapshot(), "backend": self.active_backend.value}

    def reset_stats(self) -> None:
        self._stats.reset()
        log_stage(logger, "CACHE.STATS", "Cache statistics reset")

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @staticmethod
    def _encode(key: str, value: Any) -> str:
        try:
            return orjson.dumps(value).decode()
        except orjson.JSONEncodeError as e:
            raise CacheSerializationError.from_exception(e, key=key, direction="encode")

    @staticmethod
    def _decode(key: str, raw: str) -> Any:
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CacheSerializationError.from_exception(e, key=key, direction="decode")
