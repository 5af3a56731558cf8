"""
Cache Admin Routes - Educational Documentation
===============================================

WHAT ARE THESE ENDPOINTS?
-------------------------
The operator surface for the cache: health and statistics, targeted
invalidation (by pattern, tag or named preset), full flush, warm-up and
single-key inspection.

    GET    /cache/health            health status, stats, key metrics
    GET    /cache/stats             performance stats + key metrics
    DELETE /cache/pattern/{pattern} delete keys matching a glob
    POST   /cache/tags/clear        delete keys carrying tags
    DELETE /cache/type/{type}       delete a named key-space preset
    POST   /cache/flush             delete everything
    POST   /cache/warm              run warm-up tasks
    GET    /cache/key/{key}         inspect one key
    PUT    /cache/key/{key}         set one key
    DELETE /cache/key/{key}         delete one key
    POST   /cache/stats/reset       reset hit/miss counters

SAFETY: PREVIEW BEFORE DELETE
-----------------------------
Every destructive endpoint defaults to a preview. Without {"confirm": true}
it only reports what would be deleted and mutates nothing. The confirmed
call then deletes exactly what matches at that moment.

ERROR HANDLING:
---------------
Handlers raise ValidationError / InvalidInputError for bad input; the
application's exception handler turns them into 400 responses with the
{"success": false, "error": ...} body.
"""

from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from agrotrack_cache.application.api.dependencies import CacheDep
from agrotrack_cache.application.api.models.cache import (
    ClearTagsRequest,
    ClearTypeRequest,
    ConfirmRequest,
    ErrorResponse,
    SetKeyRequest,
)
from agrotrack_cache.application.services.cache_service import patterns_for_type
from agrotrack_cache.core.config.constants import HIDDEN_VALUE_PLACEHOLDER, PREVIEW_SAMPLE_SIZE
from agrotrack_cache.core.exceptions import InvalidInputError, ValidationError
from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.infrastructure.cache.keys import CacheKeys
from agrotrack_cache.infrastructure.cache.monitor import derive_health_status
from agrotrack_cache.infrastructure.cache.warmer import WarmupTask

logger = get_logger(__name__)

router = APIRouter(prefix="/cache", tags=["Cache"])

POPULAR_SEARCHES_TASK = "Popular Search Terms"
POPULAR_SEARCHES = ["watering", "fertilizing", "pruning", "repotting", "disease"]


def _ok(data: dict[str, Any], preview: bool = False) -> dict[str, Any]:
    envelope: dict[str, Any] = {"success": True}
    if preview:
        envelope["preview"] = True
    envelope["data"] = data
    return envelope


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def verify_admin_access() -> None:
    """
    Placeholder for operator authentication.

    The upstream gateway restricts /cache to operators today. When this
    service starts enforcing it itself, check the caller's role here and
    raise HTTPException(403).
    """
    pass


router.dependencies.append(Depends(verify_admin_access))


# ============================================================================
# HEALTH AND STATISTICS
# ============================================================================


@router.get("/health")
async def get_cache_health(cache: CacheDep):
    """
    Cache health with statistics and key metrics.

    STATUS DERIVATION:
    ------------------
    unhealthy: Redis disconnected (local fallback is serving)
    degraded:  hit rate < 50% with more than 100 requests observed
    healthy:   otherwise
    """
    health = await cache.monitor.get_health_check()
    key_metrics = await cache.monitor.get_key_metrics()

    data = {
        "status": derive_health_status(health["connected"], health["stats"]).value,
        "connected": health["connected"],
        "stats": health["stats"],
        "key_metrics": key_metrics,
    }
    if "info" in health:
        data["info"] = health["info"]
    if "error" in health:
        data["error"] = health["error"]
    return _ok(data)


@router.get("/stats")
async def get_cache_stats(cache: CacheDep):
    """Performance counters and key-space metrics."""
    return _ok(
        {
            "performance": cache.store.get_stats(),
            "keys": await cache.monitor.get_key_metrics(),
            "timestamp": _now(),
        }
    )


@router.post("/stats/reset")
async def reset_cache_stats(cache: CacheDep):
    """Reset hit/miss counters."""
    cache.store.reset_stats()
    return _ok({"message": "Cache statistics reset successfully", "reset_at": _now()})


# ============================================================================
# INVALIDATION
# ============================================================================


@router.delete("/pattern/{pattern:path}")
async def clear_by_pattern(cache: CacheDep, pattern: str, body: ConfirmRequest | None = Body(default=None)):
    """
    Delete every key matching a glob pattern.

    Preview returns the match count and the first keys; confirm deletes.
    """
    body = body or ConfirmRequest()

    if not body.confirm:
        keys = await cache.store.keys(pattern)
        return _ok(
            {
                "pattern": pattern,
                "keys_to_delete": len(keys),
                "keys": keys[:PREVIEW_SAMPLE_SIZE],
                "warning": f"This will delete {len(keys)} cache entries",
            },
            preview=True,
        )

    deleted = await cache.store.delete_by_pattern(pattern)
    log_stage(logger, "ADMIN.CLEAR", "Cache cleared by pattern", pattern=pattern, deleted=deleted)
    return _ok(
        {
            "pattern": pattern,
            "deleted_count": deleted,
            "message": f"Successfully deleted {deleted} cache entries",
        }
    )


@router.post("/tags/clear")
async def clear_by_tags(cache: CacheDep, body: ClearTagsRequest):
    """Delete every key carrying any of the tags."""
    if not body.tags:
        raise ValidationError("Tags array is required")

    if not body.confirm:
        return _ok(
            {
                "tags": body.tags,
                "warning": f"This will delete all cache entries tagged with: {', '.join(body.tags)}",
            },
            preview=True,
        )

    deleted = await cache.tags.invalidate_by_tags(body.tags)
    log_stage(logger, "ADMIN.CLEAR", "Cache cleared by tags", tags=body.tags, deleted=deleted)
    return _ok(
        {
            "tags": body.tags,
            "deleted_count": deleted,
            "message": f"Successfully deleted {deleted} cache entries",
        }
    )


@router.delete("/type/{cache_type}")
async def clear_by_type(cache: CacheDep, cache_type: str, body: ClearTypeRequest | None = Body(default=None)):
    """
    Delete a named key-space preset.

    PRESETS:
    --------
    user (requires user_id), search, analytics, community, weather, plants
    """
    body = body or ClearTypeRequest()
    patterns = patterns_for_type(cache_type.lower(), body.user_id)

    if not body.confirm:
        total = 0
        for pattern in patterns:
            total += len(await cache.store.keys(pattern))
        return _ok(
            {
                "type": cache_type,
                "patterns": patterns,
                "keys_to_delete": total,
                "warning": f"This will delete {total} cache entries",
            },
            preview=True,
        )

    deleted = 0
    for pattern in patterns:
        deleted += await cache.store.delete_by_pattern(pattern)

    log_stage(logger, "ADMIN.CLEAR", "Cache cleared by type", cache_type=cache_type, deleted=deleted)
    return _ok(
        {
            "type": cache_type,
            "patterns": patterns,
            "deleted_count": deleted,
            "message": f"Successfully cleared {cache_type} cache ({deleted} entries)",
        }
    )


@router.post("/flush")
async def flush_cache(cache: CacheDep, body: ConfirmRequest | None = Body(default=None)):
    """Delete every entry in both tiers and reset statistics."""
    body = body or ConfirmRequest()

    if not body.confirm:
        metrics = await cache.monitor.get_key_metrics()
        return _ok(
            {
                "total_keys": metrics["total_keys"],
                "keys_by_pattern": metrics["keys_by_pattern"],
                "warning": f"This will delete ALL {metrics['total_keys']} cache entries. This action cannot be undone.",
            },
            preview=True,
        )

    if not await cache.store.flush_all():
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Failed to flush cache").model_dump(),
        )

    log_stage(logger, "ADMIN.FLUSH", "All cache entries flushed", level="warning")
    return _ok({"message": "All cache entries have been cleared successfully"})


# ============================================================================
# WARM-UP
# ============================================================================


@router.post("/warm")
async def warm_cache(cache: CacheDep):
    """Register the built-in warm-up tasks (once) and run every task."""
    if not cache.warmer.has_task(POPULAR_SEARCHES_TASK):
        cache.warmer.add_warmup_task(
            WarmupTask(
                name=POPULAR_SEARCHES_TASK,
                key=CacheKeys.popular_searches(),
                supplier=lambda: list(POPULAR_SEARCHES),
                ttl=3600,
            )
        )

    summary = await cache.warmer.warm_cache()
    return _ok({**summary, "message": "Cache warming completed"})


# ============================================================================
# SINGLE KEY
# ============================================================================


@router.get("/key/{key:path}")
async def get_key_info(cache: CacheDep, key: str, include_value: bool = False):
    """
    Inspect one key. The value is hidden unless include_value=true.
    """
    if not await cache.store.exists(key):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ErrorResponse(error="Cache key not found", details={"key": key}).model_dump(),
        )

    value = await cache.store.get(key)
    ttl = await cache.store.ttl(key)

    return _ok(
        {
            "key": key,
            "exists": True,
            "ttl": ttl if ttl and ttl > 0 else None,
            "size": len(orjson.dumps(value)),
            "type": _value_type(value),
            "value": value if include_value else HIDDEN_VALUE_PLACEHOLDER,
        }
    )


@router.put("/key/{key:path}")
async def set_key(cache: CacheDep, key: str, body: SetKeyRequest):
    """Store a value under a key."""
    if "value" not in body.model_fields_set:
        raise InvalidInputError("Value is required", details={"key": key})

    if not await cache.store.set(key, body.value, body.ttl):
        raise InvalidInputError("Value could not be serialized", details={"key": key})

    return _ok(
        {
            "key": key,
            "ttl": body.ttl or cache.settings.cache.CACHE_DEFAULT_TTL,
            "message": "Cache key set successfully",
        }
    )


@router.delete("/key/{key:path}")
async def delete_key(cache: CacheDep, key: str):
    """Delete one key."""
    deleted = await cache.store.delete(key) > 0
    return _ok(
        {
            "key": key,
            "deleted": deleted,
            "message": "Cache key deleted successfully" if deleted else "Cache key not found",
        }
    )


def _value_type(value: Any) -> str:
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string" if isinstance(value, str) else "null"
