"""
Cache Container

One owned instance holding every piece of cache state (store with its local
map and statistics, tag index, warm-up registry) and the services built on
it. The application builds one in its lifespan and keeps it on
app.state.cache; tests build their own, so nothing bleeds between cases.

Lifecycle:
    container = CacheContainer.from_settings(settings)
    await container.startup()    # connect, startup warmup, periodic warmup
    ...
    await container.shutdown()   # stop loops, drain detached work, disconnect

Author: System Architect
Date: 2025-12-12
"""

from agrotrack_cache.core.config.settings import Settings, get_settings
from agrotrack_cache.core.interfaces.cache import DistributedBackend
from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.core.tasks import drain_background_tasks
from agrotrack_cache.infrastructure.cache.helper import CacheHelper
from agrotrack_cache.infrastructure.cache.monitor import CacheMonitor
from agrotrack_cache.infrastructure.cache.redis_client import RedisClient
from agrotrack_cache.infrastructure.cache.store import CacheStore
from agrotrack_cache.infrastructure.cache.tags import CacheTagManager
from agrotrack_cache.infrastructure.cache.warmer import CacheWarmer

logger = get_logger(__name__)


class CacheContainer:
    """Owns the store and the services layered on it."""

    def __init__(
        self,
        store: CacheStore,
        settings: Settings | None = None,
        single_flight: bool = False,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.helper = CacheHelper(store, single_flight=single_flight)
        self.tags = CacheTagManager(store, tag_prefix=self.settings.cache.CACHE_TAG_PREFIX)
        self.warmer = CacheWarmer(store)
        self.monitor = CacheMonitor(store)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        backend: DistributedBackend | None = None,
        single_flight: bool = False,
    ) -> "CacheContainer":
        """
        Build a container from configuration.

        STAGE-CONTAINER.0: Container construction

        Args:
            settings: Configuration (global settings by default)
            backend: Distributed backend override; a RedisClient is created
                unless DISABLE_REDIS is set
            single_flight: Coalesce concurrent get_or_set misses per key
        """
        settings = settings or get_settings()

        if backend is None and not settings.redis.DISABLE_REDIS:
            backend = RedisClient(settings)

        store = CacheStore(
            backend=backend,
            default_ttl=settings.cache.CACHE_DEFAULT_TTL,
            reconnect_interval=settings.redis.REDIS_RECONNECT_INTERVAL,
        )
        log_stage(
            logger,
            "CONTAINER.0",
            "Cache container created",
            redis_disabled=settings.redis.DISABLE_REDIS,
            single_flight=single_flight,
        )
        return cls(store, settings=settings, single_flight=single_flight)

    async def startup(self) -> None:
        """
        Connect and warm the cache.

        STAGE-CONTAINER.1: Startup
        """
        await self.store.connect()

        if self.settings.cache.CACHE_WARMUP_ON_STARTUP and self.warmer.tasks:
            await self.warmer.warm_cache()
        self.warmer.start_periodic_warmup()

        log_stage(logger, "CONTAINER.1", "Cache ready", backend=self.store.active_backend.value)

    async def shutdown(self, drain_timeout: float = 5.0) -> None:
        """
        Stop background work and disconnect.

        STAGE-CONTAINER.2: Shutdown
        """
        await self.warmer.stop_periodic_warmup()
        await drain_background_tasks(timeout=drain_timeout)
        await self.store.close()

        log_stage(logger, "CONTAINER.2", "Cache shut down")
