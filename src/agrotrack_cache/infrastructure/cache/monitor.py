"""
Cache Monitor

Read-only operational view over the store: connectivity, statistics and
key-space metrics. Consumed by the /cache/health and /cache/stats routes
and by the liveness endpoint.

Health derivation:
    unhealthy  Redis disconnected
    degraded   hit rate < 50% and more than 100 requests observed
    healthy    otherwise

The request floor keeps a freshly reset or low-traffic counter from
reporting "degraded".

Author: System Architect
Date: 2025-12-11
"""

from typing import Any

from agrotrack_cache.core.config.constants import (
    DEGRADED_HIT_RATE_THRESHOLD,
    DEGRADED_MIN_REQUESTS,
    KNOWN_KEY_PATTERNS,
    HealthStatus,
)
from agrotrack_cache.core.logging.logger import get_logger
from agrotrack_cache.infrastructure.cache.store import CacheStore

logger = get_logger(__name__)


def derive_health_status(connected: bool, stats: dict[str, Any]) -> HealthStatus:
    """
    Map connectivity and statistics to a health status.

    Args:
        connected: Whether the distributed backend is reachable
        stats: Statistics snapshot (hit_rate in percent, total_requests)
    """
    if not connected:
        return HealthStatus.UNHEALTHY
    if stats.get("hit_rate", 0) < DEGRADED_HIT_RATE_THRESHOLD and stats.get("total_requests", 0) > DEGRADED_MIN_REQUESTS:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class CacheMonitor:
    """Aggregates health and key-space metrics for a store."""

    def __init__(self, store: CacheStore, key_patterns: tuple[str, ...] = KNOWN_KEY_PATTERNS):
        self._store = store
        self._key_patterns = key_patterns

    async def get_health_check(self) -> dict[str, Any]:
        """
        Connectivity, statistics and (when connected) backend info.

        STAGE-MONITOR.1: Health check

        Never raises: a failure while collecting info is reported as
        connected=False with the error message, alongside the statistics.
        """
        try:
            connected = await self._store.is_healthy()
            stats = self._store.get_stats()
            if connected:
                info = await self._store.info()
                return {"connected": True, "stats": stats, "info": info}
            return {"connected": False, "stats": stats, "error": "Redis not connected"}
        except Exception as e:
            logger.warning("Cache health check failed", stage="MONITOR.1", error=str(e))
            return {"connected": False, "stats": self._store.get_stats(), "error": str(e)}

    async def get_key_metrics(self) -> dict[str, Any]:
        """
        Total key count, counts per known pattern and memory usage.

        STAGE-MONITOR.2: Key metrics

        Returns:
            Dict with total_keys, keys_by_pattern and memory_usage
            (Redis used_memory_human, None when unavailable). Zero counts on
            failure.
        """
        try:
            total_keys = len(await self._store.keys("*"))
            keys_by_pattern = {}
            for pattern in self._key_patterns:
                keys_by_pattern[pattern] = len(await self._store.keys(pattern))

            info = await self._store.info()
            memory_usage = info.get("used_memory_human") if info else None

            return {"total_keys": total_keys, "keys_by_pattern": keys_by_pattern, "memory_usage": memory_usage}
        except Exception as e:
            logger.error("Failed to collect cache key metrics", stage="MONITOR.2", error=str(e))
            return {"total_keys": 0, "keys_by_pattern": {}, "memory_usage": None}
