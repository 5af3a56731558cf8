"""
Unit Tests for Detached Background Tasks
"""

import asyncio

import pytest

from agrotrack_cache.core.tasks import drain_background_tasks, pending_background_tasks, spawn_detached


@pytest.mark.unit
class TestSpawnDetached:
    """Fire-and-forget task helper."""

    @pytest.mark.asyncio
    async def test_task_runs_without_being_awaited(self):
        done = asyncio.Event()

        async def work():
            done.set()

        spawn_detached(work(), name="work")
        await drain_background_tasks(timeout=1.0)

        assert done.is_set()

    @pytest.mark.asyncio
    async def test_task_is_tracked_until_done(self):
        release = asyncio.Event()

        async def work():
            await release.wait()

        before = pending_background_tasks()
        task = spawn_detached(work())
        assert pending_background_tasks() == before + 1

        release.set()
        await task
        await asyncio.sleep(0)

        assert pending_background_tasks() == before

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self):
        async def boom():
            raise RuntimeError("boom")

        task = spawn_detached(boom(), name="boom")
        await drain_background_tasks(timeout=1.0)

        assert task.done()
        assert isinstance(task.exception(), RuntimeError)

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        await drain_background_tasks()
