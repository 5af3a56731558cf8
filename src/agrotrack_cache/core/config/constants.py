"""
System Constants and Enumerations

This module defines constants and enumerations shared by the cache store,
the HTTP middleware and the operator routes.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for status values
- Easy to update and track changes

Author: System Architect
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Health Status
# ============================================================================


class HealthStatus(str, Enum):
    """
    Cache health derived from connectivity and hit rate.

    HEALTHY: Redis reachable and hit rate acceptable
    DEGRADED: Redis reachable but hit rate below threshold under real traffic
    UNHEALTHY: Redis unreachable (local fallback serving)
    """

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# ============================================================================
# Cache Backends
# ============================================================================


class CacheBackendKind(str, Enum):
    """
    Which tier served an operation.

    DISTRIBUTED: Redis (shared across workers)
    LOCAL: In-process fallback map (per worker)
    """

    DISTRIBUTED = "distributed"
    LOCAL = "local"


# ============================================================================
# Operator Presets
# ============================================================================


class CacheType(str, Enum):
    """
    Named key-space groups that operators can clear in one call.
    """

    USER = "user"
    SEARCH = "search"
    ANALYTICS = "analytics"
    COMMUNITY = "community"
    WEATHER = "weather"
    PLANTS = "plants"


# ============================================================================
# Defaults
# ============================================================================

DEFAULT_CACHE_TTL = 3600  # Store default TTL (1 hour)
DEFAULT_ROUTE_TTL = 300  # Cached route TTL (5 minutes)
DEFAULT_ROUTE_PREFIX = "route:"
TAG_KEY_PREFIX = "tag:"
DEFAULT_REFRESH_THRESHOLD = 0.8  # Refresh-ahead once 20% of a TTL has elapsed

# Key-space groups reported by the monitor
KNOWN_KEY_PATTERNS = ("route:*", "user:*", "plant:*", "search:*", "analytics:*")

# Health derivation thresholds
DEGRADED_HIT_RATE_THRESHOLD = 50.0  # Percent
DEGRADED_MIN_REQUESTS = 100  # Ignore hit rate on low traffic

# Operator preview
PREVIEW_SAMPLE_SIZE = 10
HIDDEN_VALUE_PLACEHOLDER = "[hidden]"

# Redis SCAN batch size
SCAN_BATCH_SIZE = 100

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
HEADER_CACHE_STATUS = "X-Cache"

CACHE_STATUS_HIT = "HIT"
CACHE_STATUS_MISS = "MISS"
