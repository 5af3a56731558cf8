"""
Cache Helper: Read-Through and Refresh-Ahead

Removes the get-check-compute-set boilerplate from call sites.

Patterns:
    get_or_set      Cache-aside. Miss → run supplier → store → return.
    refresh_ahead   Serve the cached value now; when it is close to expiry,
                    recompute in a detached task for the next caller.
    cached          Explicit higher-order wrapper: returns a cached version
                    of an async or sync callable.
    invalidating    Higher-order wrapper for mutations: runs the callable,
                    then deletes the given key patterns.
    set_and_persist           Write-through: persist, then cache.
    set_and_schedule_persist  Write-behind: cache, persist in the background.

Concurrency:
    By default two concurrent misses for the same key both run the supplier
    and both write (last write wins). Suppliers are expected to be idempotent
    and cheap relative to request latency. CacheHelper(single_flight=True)
    coalesces concurrent misses within this process onto one in-flight task.
    Nothing coordinates across processes.

Author: System Architect
Date: 2025-12-10
"""

import asyncio
import functools
import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from agrotrack_cache.core.config.constants import DEFAULT_REFRESH_THRESHOLD
from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.core.tasks import spawn_detached
from agrotrack_cache.infrastructure.cache.store import CacheStore

logger = get_logger(__name__)

Supplier = Callable[[], Any]
KeySpec = str | Callable[..., str]
PatternSpec = Iterable[str] | Callable[..., Iterable[str]]


async def resolve_supplier(supplier: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call a sync or async supplier and return its value."""
    result = supplier(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class CacheHelper:
    """
    Read-through helpers on top of a CacheStore.

    Usage:
        helper = CacheHelper(store)

        plants = await helper.get_or_set(
            "user:plants:42", lambda: repo.list_plants(42), ttl=1800
        )

        forecast = await helper.refresh_ahead(
            "weather:lisbon", fetch_forecast, ttl=3600, refresh_threshold=0.8
        )
    """

    def __init__(self, store: CacheStore, default_ttl: int | None = None, single_flight: bool = False):
        """
        Args:
            store: Backing cache store
            default_ttl: TTL used when a call passes none
            single_flight: Coalesce concurrent misses for the same key
        """
        self._store = store
        self._default_ttl = default_ttl
        self._single_flight = single_flight
        self._in_flight: dict[str, asyncio.Future] = {}
        self._refreshing: dict[str, asyncio.Task] = {}

    @property
    def store(self) -> CacheStore:
        return self._store

    # -------------------------------------------------------------------------
    # Read-through
    # -------------------------------------------------------------------------

    async def get_or_set(self, key: str, supplier: Supplier, ttl: int | None = None) -> Any:
        """
        Get from cache or compute and cache the result (cache-aside pattern).

        STAGE-HELPER.1: Cache-aside

        Args:
            key: Cache key
            supplier: Zero-argument callable (sync or async) producing the value
            ttl: Time-to-live in seconds

        Returns:
            Cached or freshly computed value
        """
        cached = await self._store.get(key)
        if cached is not None:
            return cached

        if not self._single_flight:
            return await self._compute_and_store(key, supplier, ttl)

        pending = self._in_flight.get(key)
        if pending is not None:
            log_stage(logger, "HELPER.1", "Joining in-flight computation", level="debug", key=key)
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await self._compute_and_store(key, supplier, ttl)
            future.set_result(value)
            return value
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved: the owner re-raises it, waiters are optional
            future.exception()
            raise
        finally:
            if not future.done():
                future.cancel()
            self._in_flight.pop(key, None)

    async def _compute_and_store(self, key: str, supplier: Supplier, ttl: int | None) -> Any:
        value = await resolve_supplier(supplier)
        if value is not None:
            await self._store.set(key, value, ttl if ttl is not None else self._default_ttl)
        return value

    # -------------------------------------------------------------------------
    # Refresh-ahead
    # -------------------------------------------------------------------------

    async def refresh_ahead(
        self,
        key: str,
        supplier: Supplier,
        ttl: int,
        refresh_threshold: float = DEFAULT_REFRESH_THRESHOLD,
    ) -> Any:
        """
        Serve the cached value and refresh it in the background when stale.

        STAGE-HELPER.2: Refresh-ahead

        "Stale" means the entry's remaining life is below
        ttl * refresh_threshold seconds, so 0.8 refreshes once a fifth of the
        lifetime has passed and any factor above 1 refreshes on every call. The caller never waits for the refresh; the next caller after
        it completes sees the new value. At most one refresh per key runs at
        a time. With nothing cached this behaves like get_or_set.

        Args:
            key: Cache key
            supplier: Zero-argument callable (sync or async) producing the value
            ttl: TTL for the recomputed entry
            refresh_threshold: Fraction of ttl; a refresh starts once the
                remaining life drops below ttl * refresh_threshold

        Returns:
            The currently cached value (or the computed one on a cold miss)
        """
        cached = await self._store.get(key)
        if cached is None:
            return await self.get_or_set(key, supplier, ttl)

        remaining = await self._store.ttl(key)
        if remaining is not None and remaining < ttl * refresh_threshold and key not in self._refreshing:
            log_stage(
                logger,
                "HELPER.2",
                "Scheduling refresh-ahead",
                key=key,
                remaining_ttl=remaining,
                refresh_threshold=refresh_threshold,
            )
            task = spawn_detached(self._refresh(key, supplier, ttl), name=f"refresh:{key}")
            self._refreshing[key] = task
            task.add_done_callback(lambda _t: self._refreshing.pop(key, None))

        return cached

    async def _refresh(self, key: str, supplier: Supplier, ttl: int) -> None:
        value = await resolve_supplier(supplier)
        if value is not None:
            await self._store.set(key, value, ttl)
            log_stage(logger, "HELPER.2", "Refresh-ahead complete", key=key)

    def refresh_pending(self, key: str) -> asyncio.Task | None:
        """The running refresh task for a key, if any."""
        return self._refreshing.get(key)

    # -------------------------------------------------------------------------
    # Write-through / write-behind
    # -------------------------------------------------------------------------

    async def set_and_persist(
        self, key: str, value: Any, persist: Callable[[Any], Any], ttl: int | None = None
    ) -> bool:
        """
        Write-through: persist first, then cache.

        STAGE-HELPER.3: Write-through

        A failing persist propagates and nothing is cached, so the cache
        never holds a value the source of truth rejected.

        Args:
            key: Cache key
            value: Value to persist and cache
            persist: Callable (sync or async) receiving the value
            ttl: Time-to-live in seconds

        Returns:
            Result of the cache write
        """
        await resolve_supplier(persist, value)
        return await self._store.set(key, value, ttl if ttl is not None else self._default_ttl)

    async def set_and_schedule_persist(
        self, key: str, value: Any, persist: Callable[[Any], Any], ttl: int | None = None
    ) -> bool:
        """
        Write-behind: cache now, persist in a detached task.

        STAGE-HELPER.4: Write-behind

        A failing persist is only logged; the cached value stays.

        Returns:
            Result of the cache write
        """
        cached = await self._store.set(key, value, ttl if ttl is not None else self._default_ttl)
        spawn_detached(resolve_supplier(persist, value), name=f"persist:{key}")
        log_stage(logger, "HELPER.4", "Persist scheduled", key=key)
        return cached

    # -------------------------------------------------------------------------
    # Higher-order wrappers
    # -------------------------------------------------------------------------

    def cached(self, key: KeySpec, ttl: int | None, fn: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
        """
        Wrap a callable so its results are served from the cache.

        Args:
            key: Literal key, or a callable receiving the wrapped function's
                arguments and returning the key
            ttl: Time-to-live in seconds
            fn: Callable (sync or async) to wrap

        Returns:
            Async callable with the same signature

        Example:
            get_plant = helper.cached(lambda plant_id: f"plant:{plant_id}", 1800, repo.get_plant)
            plant = await get_plant(42)
        """

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = key(*args, **kwargs) if callable(key) else key
            return await self.get_or_set(
                cache_key, functools.partial(resolve_supplier, fn, *args, **kwargs), ttl
            )

        return wrapper

    def invalidating(self, patterns: PatternSpec, fn: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
        """
        Wrap a mutation so matching cache entries are deleted after it runs.

        Each pattern is deleted independently. A failing pattern is logged
        and never hides the mutation's result.

        Args:
            patterns: Glob patterns, or a callable receiving the wrapped
                function's arguments and returning them
            fn: Callable (sync or async) performing the mutation

        Returns:
            Async callable with the same signature
        """

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await resolve_supplier(fn, *args, **kwargs)
            targets = patterns(*args, **kwargs) if callable(patterns) else patterns
            await delete_patterns(self._store, targets)
            return result

        return wrapper


async def delete_patterns(store: CacheStore, patterns: Iterable[str]) -> int:
    """
    Delete each pattern independently.

    STAGE-INVALIDATE.1: Pattern invalidation

    Returns:
        Total keys deleted across the patterns that succeeded
    """
    total = 0
    for pattern in patterns:
        try:
            total += await store.delete_by_pattern(pattern)
        except Exception as e:
            logger.error(
                "Cache invalidation failed for pattern",
                stage="INVALIDATE.1",
                pattern=pattern,
                error=str(e),
                error_type=type(e).__name__,
            )
    return total
