"""
Cache Infrastructure

Two-tier cache (Redis with a per-process fallback map) and the services
layered on it: read-through helper, tag index, warmer and monitor.
"""

from agrotrack_cache.infrastructure.cache.container import CacheContainer
from agrotrack_cache.infrastructure.cache.helper import CacheHelper
from agrotrack_cache.infrastructure.cache.keys import CacheKeys
from agrotrack_cache.infrastructure.cache.monitor import CacheMonitor, derive_health_status
from agrotrack_cache.infrastructure.cache.redis_client import RedisClient
from agrotrack_cache.infrastructure.cache.store import CacheStatistics, CacheStore, LocalStorage
from agrotrack_cache.infrastructure.cache.tags import CacheTagManager
from agrotrack_cache.infrastructure.cache.warmer import CacheWarmer, WarmupTask

__all__ = [
    "CacheContainer",
    "CacheHelper",
    "CacheKeys",
    "CacheMonitor",
    "CacheStatistics",
    "CacheStore",
    "CacheTagManager",
    "CacheWarmer",
    "LocalStorage",
    "RedisClient",
    "WarmupTask",
    "derive_health_status",
]
