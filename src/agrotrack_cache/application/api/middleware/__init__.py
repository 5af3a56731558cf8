"""
Middleware Package - Educational Documentation
===============================================

AVAILABLE MIDDLEWARE:
---------------------
1. error_handler: Catch-all for unhandled exceptions
2. request_context: Request ID, caller identity, request logging
3. cache_invalidation: Invalidate cache entries after successful mutations
4. response_cache: Serve cached JSON for GET routes

MIDDLEWARE ORDERING:
--------------------
Request flow (outermost first):

    Client → ErrorHandling → CORS → RequestContext → CacheInvalidation
           → ResponseCache → Handler

- Error handling wraps everything so nothing escapes unformatted
- Request context runs before the cache layers so request.state.user_id
  is set when the response cache derives its key
- Invalidation sits outside the response cache so it sees the final
  status code of every mutation

Starlette makes the most recently added middleware the outermost one, so
setup_middleware() registers them innermost first.

USAGE EXAMPLE:
--------------
    from agrotrack_cache.application.api.middleware import setup_middleware

    app = FastAPI()
    setup_middleware(app, settings, cache_rules=[...], invalidation_rules=[...])
"""

from collections.abc import Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agrotrack_cache.core.config.constants import HEADER_CACHE_STATUS, HEADER_REQUEST_ID
from agrotrack_cache.core.config.settings import Settings
from agrotrack_cache.core.logging.logger import get_logger

from .cache_invalidation import CacheInvalidationMiddleware, InvalidationRule, add_cache_invalidation_middleware
from .error_handler import ErrorHandlingMiddleware, add_error_handling_middleware
from .request_context import RequestContextMiddleware
from .response_cache import CacheRule, ResponseCacheMiddleware, add_response_cache_middleware, build_cache_key

logger = get_logger(__name__)


def setup_middleware(
    app: FastAPI,
    settings: Settings,
    cache_rules: Sequence[CacheRule] = (),
    invalidation_rules: Sequence[InvalidationRule] = (),
):
    """
    Register all middleware components in the correct order.

    Args:
        app: FastAPI application instance
        settings: Application settings
        cache_rules: Cacheable GET routes
        invalidation_rules: Mutations and what they invalidate
    """
    logger.info("Registering middleware components...")

    # ========================================================================
    # 5. RESPONSE CACHE (innermost - closest to the handlers)
    # ========================================================================
    add_response_cache_middleware(
        app,
        rules=cache_rules,
        key_prefix=settings.cache.CACHE_ROUTE_PREFIX,
        default_ttl=settings.cache.CACHE_ROUTE_TTL,
    )

    # ========================================================================
    # 4. CACHE INVALIDATION
    # ========================================================================
    add_cache_invalidation_middleware(app, rules=invalidation_rules)

    # ========================================================================
    # 3. REQUEST CONTEXT (request ID + user identity for cache keys)
    # ========================================================================
    app.add_middleware(RequestContextMiddleware)

    # ========================================================================
    # 2. CORS
    # ========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID, HEADER_CACHE_STATUS],
    )

    # ========================================================================
    # 1. ERROR HANDLING (outermost - catches all errors)
    # ========================================================================
    add_error_handling_middleware(app, include_traceback=(settings.app.ENVIRONMENT == "development"))

    logger.info("All middleware components registered successfully")


__all__ = [
    "setup_middleware",
    "CacheRule",
    "InvalidationRule",
    "ResponseCacheMiddleware",
    "CacheInvalidationMiddleware",
    "RequestContextMiddleware",
    "ErrorHandlingMiddleware",
    "build_cache_key",
    "add_response_cache_middleware",
    "add_cache_invalidation_middleware",
    "add_error_handling_middleware",
]
