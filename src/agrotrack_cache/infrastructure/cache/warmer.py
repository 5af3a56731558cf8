"""
Cache Warmer

Pre-populates known-hot keys so the first requests after a deploy do not
stampede the source of truth.

Strategies:
1. Startup warming: warm_cache() runs every registered task once,
   concurrently, settling all of them (one failing supplier never stops
   the others)
2. Periodic warming: tasks that declare an interval are re-run on that
   interval for the lifetime of the process

The registry is in-memory and owned by the warmer instance; nothing is
persisted.

Author: System Architect
Date: 2025-12-11
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.core.tasks import spawn_detached
from agrotrack_cache.infrastructure.cache.helper import resolve_supplier
from agrotrack_cache.infrastructure.cache.store import CacheStore

logger = get_logger(__name__)


@dataclass
class WarmupTask:
    """
    A named (key, ttl, supplier) warm-up job.

    Attributes:
        name: Label used in logs
        key: Cache key to populate
        supplier: Zero-argument callable (sync or async) producing the value
        ttl: Time-to-live in seconds (store default when None)
        interval: Re-run period in milliseconds (no periodic refresh when None)
    """

    name: str
    key: str
    supplier: Callable[[], Any]
    ttl: int | None = None
    interval: int | None = None


class CacheWarmer:
    """
    Registry and runner for warm-up tasks.

    Usage:
        warmer = CacheWarmer(store)
        warmer.add_warmup_task(WarmupTask(
            name="Popular Search Terms",
            key=CacheKeys.popular_searches(),
            supplier=load_popular_searches,
            ttl=3600,
            interval=15 * 60 * 1000,
        ))

        await warmer.warm_cache()
        warmer.start_periodic_warmup()
        ...
        await warmer.stop_periodic_warmup()
    """

    def __init__(self, store: CacheStore):
        self._store = store
        self._tasks: list[WarmupTask] = []
        self._periodic: list[asyncio.Task] = []

    @property
    def tasks(self) -> list[WarmupTask]:
        return list(self._tasks)

    def add_warmup_task(self, task: WarmupTask) -> None:
        """Register a task. Duplicate keys are last-write-wins at warm time."""
        self._tasks.append(task)

    def has_task(self, name: str) -> bool:
        return any(task.name == name for task in self._tasks)

    async def _run_task(self, task: WarmupTask) -> None:
        value = await resolve_supplier(task.supplier)
        await self._store.set(task.key, value, task.ttl)

    async def warm_cache(self) -> dict[str, int]:
        """
        Run every registered task once, concurrently.

        STAGE-WARMUP.1: Cache warming

        Returns:
            Dict with total, successful and failed counts
        """
        log_stage(logger, "WARMUP.1", "Starting cache warmup", tasks=len(self._tasks))

        results = await asyncio.gather(
            *(self._run_task(task) for task in self._tasks),
            return_exceptions=True,
        )

        failed = 0
        for task, result in zip(self._tasks, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.error(
                    "Cache warmup task failed",
                    stage="WARMUP.1",
                    task_name=task.name,
                    key=task.key,
                    error=str(result),
                    error_type=type(result).__name__,
                )
            else:
                logger.debug("Cache warmed", stage="WARMUP.1", task_name=task.name, key=task.key)

        summary = {"total": len(results), "successful": len(results) - failed, "failed": failed}
        log_stage(logger, "WARMUP.1", "Cache warmup completed", **summary)
        return summary

    # -------------------------------------------------------------------------
    # Periodic warming
    # -------------------------------------------------------------------------

    async def _refresh_forever(self, task: WarmupTask) -> None:
        period = task.interval / 1000
        while True:
            await asyncio.sleep(period)
            try:
                await self._run_task(task)
                logger.debug("Periodic cache refresh", stage="WARMUP.2", task_name=task.name)
            except Exception as e:
                logger.error(
                    "Periodic cache refresh failed",
                    stage="WARMUP.2",
                    task_name=task.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def start_periodic_warmup(self) -> int:
        """
        Schedule one refresh loop per task that declares an interval.

        STAGE-WARMUP.2: Periodic warming

        Returns:
            Number of loops started
        """
        for task in self._tasks:
            if task.interval:
                self._periodic.append(spawn_detached(self._refresh_forever(task), name=f"warmup:{task.name}"))

        if self._periodic:
            log_stage(logger, "WARMUP.2", "Periodic cache warmup started", loops=len(self._periodic))
        return len(self._periodic)

    async def stop_periodic_warmup(self) -> None:
        """Cancel every refresh loop (on shutdown)."""
        for loop_task in self._periodic:
            loop_task.cancel()
        if self._periodic:
            await asyncio.gather(*self._periodic, return_exceptions=True)
        self._periodic.clear()
