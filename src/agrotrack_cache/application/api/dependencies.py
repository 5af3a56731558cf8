"""
FastAPI Dependency Injection Module - Educational Documentation
================================================================

WHAT IS DEPENDENCY INJECTION?
-----------------------------
Route handlers declare what they need; FastAPI resolves it per request:

    @router.get("/stats")
    async def get_stats(cache: CacheDep):
        return cache.store.get_stats()

WHERE DO THE OBJECTS COME FROM?
-------------------------------
The CacheContainer is built ONCE in the application lifespan and stored on
app.state.cache. These providers only look it up, so a test can hand
create_app() its own container (with an in-memory backend) and every
route sees it.
"""

from typing import Annotated

from fastapi import Depends, Request

from agrotrack_cache.application.services.cache_service import CacheService
from agrotrack_cache.core.config.settings import Settings, get_settings
from agrotrack_cache.infrastructure.cache.container import CacheContainer

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_cache_container(request: Request) -> CacheContainer:
    """
    Retrieve the CacheContainer from application state.

    Raises:
        RuntimeError: If the lifespan has not built the container
    """
    container = getattr(request.app.state, "cache", None)
    if container is None:
        raise RuntimeError("Cache container not initialized; is the application lifespan running?")
    return container


def get_cache_service(container: Annotated[CacheContainer, Depends(get_cache_container)]) -> CacheService:
    """Domain cache service over the application's store."""
    return CacheService(container.store)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with (global settings as fallback)."""
    return getattr(request.app.state, "settings", None) or get_settings()


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================

CacheDep = Annotated[CacheContainer, Depends(get_cache_container)]
CacheServiceDep = Annotated[CacheService, Depends(get_cache_service)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
