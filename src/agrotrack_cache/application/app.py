#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Assembles the AgroTrack cache service: the cache container built in the
lifespan, the middleware stack (error handling, CORS, request context,
cache invalidation, response cache), the operator routes under /cache and
the liveness route.

Usage:
    from agrotrack_cache.application.app import create_app

    app = create_app(cache_rules=[CacheRule("/api/plants/{plant_id}", ttl=600)])

Author: Senior Solution Architect
Date: 2025-12-12
"""

from collections.abc import Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agrotrack_cache.application.api.middleware import CacheRule, InvalidationRule, setup_middleware
from agrotrack_cache.application.api.routes.cache import router as cache_router
from agrotrack_cache.application.api.routes.health import router as health_router
from agrotrack_cache.core.config.settings import Settings, get_settings
from agrotrack_cache.core.exceptions import AgroTrackError, ValidationError
from agrotrack_cache.core.logging.logger import get_logger, setup_logging
from agrotrack_cache.infrastructure.cache.container import CacheContainer

logger = get_logger(__name__)


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    settings: Settings | None = None,
    cache_rules: Sequence[CacheRule] | None = None,
    invalidation_rules: Sequence[InvalidationRule] | None = None,
    container: CacheContainer | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration (global settings by default)
        cache_rules: GET routes whose JSON responses are cached
        invalidation_rules: Mutations and the entries they invalidate
        container: Pre-built cache container to adopt instead of building
            one from settings (tests pass one with an in-memory backend)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle (startup and shutdown).
        """
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

        logger.info(
            "Starting AgroTrack cache service",
            environment=settings.app.ENVIRONMENT,
            version=settings.app.APP_VERSION,
        )

        cache = container or CacheContainer.from_settings(settings)
        await cache.startup()
        app.state.cache = cache
        logger.info("Application startup complete")

        try:
            yield
        finally:
            logger.info("Shutting down application")
            await cache.shutdown()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Two-tier response cache for the AgroTrack plant-care API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # ========================================================================
    # MIDDLEWARE REGISTRATION
    # ========================================================================
    setup_middleware(
        app,
        settings,
        cache_rules=cache_rules or (),
        invalidation_rules=invalidation_rules or (),
    )

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        """Operator input errors become 400 responses."""
        logger.warning(f"Validation error: {exc.message}", error_type=type(exc).__name__, details=exc.details)
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": exc.message, "details": exc.details},
        )

    @app.exception_handler(AgroTrackError)
    async def service_exception_handler(request: Request, exc: AgroTrackError):
        """Any other service error becomes a 500 response."""
        logger.error(f"Service error: {exc.message}", error_type=type(exc).__name__, details=exc.details)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": exc.message, "details": exc.details},
        )

    # ========================================================================
    # ROUTER REGISTRATION
    # ========================================================================
    # Operator routes live under API_BASE_PATH (/api/cache/...); the
    # liveness check stays at the root (/health).
    app.include_router(cache_router, prefix=settings.API_BASE_PATH)
    app.include_router(health_router)

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint with API information.
        """
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": "/health",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
