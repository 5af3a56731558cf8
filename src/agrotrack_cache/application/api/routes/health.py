"""
Health Check Routes - Educational Documentation
================================================

WHAT ARE HEALTH CHECKS?
-----------------------
Endpoints that report whether the service is running and how its
dependencies are doing. Load balancers and orchestrators poll them.

LIVENESS VS CACHE HEALTH:
-------------------------
This service keeps answering when Redis is down: the local tier takes
over. So the liveness answer is always 200 while the process runs, and the
cache tier's state is reported alongside it instead of failing the check:

    {"status": "alive", "cache": "unhealthy", "timestamp": "..."}

Detailed cache diagnostics (stats, key metrics, Redis INFO) live under
GET /cache/health.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from agrotrack_cache.application.api.dependencies import CacheDep
from agrotrack_cache.infrastructure.cache.monitor import derive_health_status

# ============================================================================
# ROUTER SETUP
# ============================================================================

router = APIRouter(prefix="/health", tags=["Health"])


class LivenessResponse(BaseModel):
    """
    Liveness response.

    status is always "alive"; cache is "healthy", "degraded" or "unhealthy".
    """

    status: str
    cache: str
    timestamp: str


@router.get("", response_model=LivenessResponse)
async def health_check(cache: CacheDep):
    """
    Liveness plus the cache tier's health status.

    Never fails because of Redis: an unreachable Redis shows up as
    cache="unhealthy" with a 200 response.
    """
    connected = await cache.store.is_healthy()
    cache_status = derive_health_status(connected, cache.store.get_stats())

    return LivenessResponse(
        status="alive",
        cache=cache_status.value,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
