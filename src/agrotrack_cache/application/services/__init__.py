"""
Application Services Package
=============================

Domain-level cache helpers used by the API routes and by the plant-care
handlers that share this cache.

WHY SERVICE LAYER?
------------------
Routes handle HTTP; services know the key space. A handler caches a user
with `CacheService.cache_user(...)` and never builds "user:42" by hand,
and DELETE /cache/type/{type} resolves its presets through the same
`patterns_for_type` the service uses.
"""

from agrotrack_cache.application.services.cache_service import CacheService, patterns_for_type

__all__ = [
    "CacheService",
    "patterns_for_type",
]
