"""
Cache-Related Exceptions

All exceptions related to caching operations (Redis tier, local tier, codec).

Author: System Architect
Date: 2025-12-08
"""

from agrotrack_cache.core.exceptions.base import AgroTrackError


class CacheError(AgroTrackError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when Redis cannot be reached.

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Connection or command timeout
    - Authentication failure

    The store answers these from the local map and retries Redis later.
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a Redis command fails on a reachable server.

    Common causes:
    - Wrong key type (e.g. SMEMBERS on a string)
    - Memory limit exceeded
    - Command rejected by server configuration
    """
    pass


class CacheSerializationError(CacheError):
    """
    Raised when a value cannot be encoded to or decoded from its stored form.

    The store logs it and treats the entry as absent (get) or skipped (set).
    """
    pass
