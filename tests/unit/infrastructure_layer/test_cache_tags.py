"""
Unit Tests for CacheTagManager
"""

import pytest

from agrotrack_cache.infrastructure.cache.tags import CacheTagManager


@pytest.mark.unit
class TestCacheTagManager:
    """Tag association and tag invalidation."""

    @pytest.mark.asyncio
    async def test_tag_key_records_membership(self, store):
        tags = CacheTagManager(store)

        await tags.tag_key("plant:1", ["plants", "user:7"])

        assert await tags.get_tagged_keys("plants") == {"plant:1"}
        assert await tags.get_tagged_keys("user:7") == {"plant:1"}

    def test_tag_set_key_uses_prefix(self, local_store):
        assert CacheTagManager(local_store, tag_prefix="t:").tag_set_key("plants") == "t:plants"

    @pytest.mark.asyncio
    async def test_invalidate_by_tag_removes_every_member(self, store):
        tags = CacheTagManager(store)
        for key in ("plant:1", "plant:2", "user:1"):
            await store.set(key, {"key": key})
        await tags.tag_key("plant:1", ["plants"])
        await tags.tag_key("plant:2", ["plants"])

        assert await tags.invalidate_by_tag("plants") == 2

        assert await store.exists("plant:1") is False
        assert await store.exists("plant:2") is False
        assert await store.exists("user:1") is True
        assert await tags.get_tagged_keys("plants") == set()

    @pytest.mark.asyncio
    async def test_shared_tag_invalidates_both_keys(self, store):
        tags = CacheTagManager(store)
        await store.set("k1", "a")
        await store.set("k2", "b")
        await tags.tag_key("k1", ["plantX"])
        await tags.tag_key("k2", ["plantX"])

        assert await tags.invalidate_by_tag("plantX") == 2
        assert await store.get("k1") is None
        assert await store.get("k2") is None

    @pytest.mark.asyncio
    async def test_unknown_tag_deletes_nothing(self, store):
        assert await CacheTagManager(store).invalidate_by_tag("nothing") == 0

    @pytest.mark.asyncio
    async def test_invalidate_by_tags_with_shared_member(self, store):
        tags = CacheTagManager(store)
        await store.set("plant:1", 1)
        await store.set("plant:2", 1)
        await tags.tag_key("plant:1", ["plants", "garden"])
        await tags.tag_key("plant:2", ["garden"])

        deleted = await tags.invalidate_by_tags(["plants", "garden"])

        assert deleted == 2
        assert await store.keys("plant:*") == []
        assert await store.keys("tag:*") == []

    @pytest.mark.asyncio
    async def test_works_on_local_fallback(self, fallback_store):
        tags = CacheTagManager(fallback_store)
        await fallback_store.set("plant:1", 1)
        await tags.tag_key("plant:1", ["plants"])

        assert await tags.invalidate_by_tag("plants") == 1
        assert await fallback_store.exists("plant:1") is False
