"""
Integration Tests for the Redis-backed Cache Store
"""

import uuid

import pytest

from agrotrack_cache.core.exceptions import CacheConnectionError
from agrotrack_cache.infrastructure.cache.container import CacheContainer
from agrotrack_cache.infrastructure.cache.redis_client import RedisClient
from tests.test_fixtures.cache_factory import CacheTestFactory


@pytest.fixture
async def redis_container():
    settings = CacheTestFactory.settings(
        CACHE_KEY_PREFIX=f"agrotrack-test-{uuid.uuid4().hex[:8]}:",
        REDIS_CONNECT_RETRIES=1,
    )
    client = RedisClient(settings)
    try:
        await client.connect()
    except CacheConnectionError:
        pytest.skip("Redis is not reachable")
    await client.disconnect()

    container = CacheContainer.from_settings(settings)
    await container.startup()
    yield container
    await container.store.flush_all()
    await container.shutdown()


@pytest.mark.integration
class TestRedisStore:
    """Store operations against a live Redis."""

    @pytest.mark.asyncio
    async def test_round_trip_and_ttl(self, redis_container):
        store = redis_container.store

        assert await store.set("plant:1", {"id": 1, "tags": ["fern"]}, ttl=60) is True
        assert await store.get("plant:1") == {"id": 1, "tags": ["fern"]}
        assert 0 < await store.ttl("plant:1") <= 60
        assert store.get_stats()["backend"] == "distributed"

    @pytest.mark.asyncio
    async def test_pattern_delete(self, redis_container):
        store = redis_container.store
        for page in range(3):
            await store.set(f"plant:carelog:1:page:{page}", [page])

        assert sorted(await store.keys("plant:carelog:1:*")) == [
            "plant:carelog:1:page:0",
            "plant:carelog:1:page:1",
            "plant:carelog:1:page:2",
        ]
        assert await store.delete_by_pattern("plant:carelog:1:*") == 3
        assert await store.delete_by_pattern("plant:carelog:1:*") == 0

    @pytest.mark.asyncio
    async def test_tag_invalidation(self, redis_container):
        await redis_container.store.set("route:/api/plants/1", {"id": 1})
        await redis_container.tags.tag_key("route:/api/plants/1", ["plant:1"])

        assert await redis_container.tags.invalidate_by_tag("plant:1") == 1
        assert await redis_container.store.exists("route:/api/plants/1") is False
        assert await redis_container.tags.get_tagged_keys("plant:1") == set()
