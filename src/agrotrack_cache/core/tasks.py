"""
Detached Background Tasks

Fire-and-forget helper used for work that must not hold up the response:
storing a freshly rendered route response, invalidating patterns after a
mutation, refresh-ahead recomputation and periodic warm-up.

asyncio only keeps weak references to tasks, so a bare create_task() can be
garbage collected mid-flight. Every task spawned here is parked in a module
set until it finishes, and its exception (if any) is logged instead of
surfacing as "Task exception was never retrieved".

Author: System Architect
Date: 2025-12-10
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from agrotrack_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

_background_tasks: set[asyncio.Task] = set()


def _on_task_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)

    if task.cancelled():
        return

    exc = task.exception()
    if exc is not None:
        logger.error(
            "Background task failed",
            stage="TASK.FAILED",
            task_name=task.get_name(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def spawn_detached(coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
    """
    Schedule a coroutine without awaiting it.

    Args:
        coro: Coroutine to run on the current event loop
        name: Task name (shows up in failure logs)

    Returns:
        The scheduled task (callers may await it, e.g. in tests)
    """
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_task_done)
    return task


def pending_background_tasks() -> int:
    """Number of detached tasks still running."""
    return len(_background_tasks)


async def drain_background_tasks(timeout: float | None = None) -> None:
    """
    Wait for every detached task spawned so far.

    Used on shutdown and by tests that assert on the effects of
    fire-and-forget work.
    """
    if not _background_tasks:
        return
    await asyncio.wait(list(_background_tasks), timeout=timeout)
