"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest
from fastapi.testclient import TestClient

from agrotrack_cache.application.app import create_app
from agrotrack_cache.core.tasks import drain_background_tasks
from tests.test_fixtures.cache_factory import CacheTestFactory, FailingBackend, FakeClock, InMemoryBackend

# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml), so async fixtures
# and tests need no extra decorator beyond @pytest.mark.asyncio for clarity.


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings with startup warmup disabled and the test environment set."""
    return CacheTestFactory.settings()


# ============================================================================
# Backend Doubles
# ============================================================================


@pytest.fixture
def fake_clock():
    """Clock that only advances when the test says so."""
    return FakeClock()


@pytest.fixture
def in_memory_backend(fake_clock):
    """Reachable in-memory DistributedBackend."""
    return InMemoryBackend(fake_clock)


@pytest.fixture
def failing_backend(fake_clock):
    """DistributedBackend that is unreachable."""
    return FailingBackend(fake_clock)


# ============================================================================
# Store and Container Fixtures
# ============================================================================


@pytest.fixture
def local_store(fake_clock):
    """Local-only store (DISABLE_REDIS mode)."""
    return CacheTestFactory.store(clock=fake_clock)


@pytest.fixture
async def store(in_memory_backend):
    """Store connected to the in-memory backend."""
    cache_store = CacheTestFactory.store(in_memory_backend)
    await cache_store.connect()
    yield cache_store
    await drain_background_tasks(timeout=1.0)
    await cache_store.close()


@pytest.fixture
async def fallback_store(failing_backend):
    """Store whose backend is down from the start."""
    cache_store = CacheTestFactory.store(failing_backend, reconnect_interval=30)
    await cache_store.connect()
    return cache_store


@pytest.fixture
def container(in_memory_backend, test_settings):
    """Container over the in-memory backend (not yet started)."""
    return CacheTestFactory.container(in_memory_backend, settings=test_settings)


# ============================================================================
# HTTP Fixtures
# ============================================================================


@pytest.fixture
def client(container, test_settings):
    """TestClient for the full application; runs the lifespan."""
    app = create_app(test_settings, container=container)
    with TestClient(app) as test_client:
        yield test_client
