"""
Cache Tag Manager

Secondary index from a tag to the set of keys written under it, so a
mutation can invalidate every related entry without pattern-matching the
whole key-space.

Layout:
    tag:<tag>  →  {key1, key2, ...}   (stored through CacheStore.sadd)

Invalidation deletes the member keys first, then the tag set. A key may
belong to several tags; deleting it twice is harmless.

Author: System Architect
Date: 2025-12-10
"""

from collections.abc import Iterable

from agrotrack_cache.core.config.constants import TAG_KEY_PREFIX
from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.infrastructure.cache.store import CacheStore

logger = get_logger(__name__)


class CacheTagManager:
    """Associates keys with tags and invalidates them by tag."""

    def __init__(self, store: CacheStore, tag_prefix: str = TAG_KEY_PREFIX):
        self._store = store
        self._tag_prefix = tag_prefix

    def tag_set_key(self, tag: str) -> str:
        """Reserved key under which a tag's members are stored."""
        return f"{self._tag_prefix}{tag}"

    async def tag_key(self, key: str, tags: Iterable[str]) -> None:
        """
        Add a key to every tag's member set.

        STAGE-TAG.1: Tag association
        """
        for tag in tags:
            await self._store.sadd(self.tag_set_key(tag), key)

    async def get_tagged_keys(self, tag: str) -> set[str]:
        return await self._store.smembers(self.tag_set_key(tag))

    async def invalidate_by_tag(self, tag: str) -> int:
        """
        Delete every key carrying a tag, then the tag set itself.

        STAGE-TAG.2: Tag invalidation

        Returns:
            Number of member keys removed (0 for an unknown or empty tag)
        """
        members = await self.get_tagged_keys(tag)
        if not members:
            return 0

        deleted = await self._store.delete(*members)
        await self._store.delete(self.tag_set_key(tag))

        log_stage(logger, "TAG.2", "Tag invalidated", tag=tag, deleted=deleted)
        return deleted

    async def invalidate_by_tags(self, tags: Iterable[str]) -> int:
        """Sum of invalidate_by_tag over the tags, in any order."""
        total = 0
        for tag in tags:
            total += await self.invalidate_by_tag(tag)
        return total
