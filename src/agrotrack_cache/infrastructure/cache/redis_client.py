"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API, satisfies DistributedBackend)
        ├── ConnectionManager (Connection lifecycle, startup retries)
        └── OperationExecutor (Command execution with error translation)

Every key is namespaced with CACHE_KEY_PREFIX on the way in and stripped on
the way out, so callers (store, tag manager, operator routes) only ever see
logical keys such as ``plant:42`` while Redis holds ``agrotrack:plant:42``.

Error Translation:
    redis ConnectionError / TimeoutError  →  CacheConnectionError
    any other RedisError                  →  CacheKeyError

The client never logs these at error level itself: an unreachable Redis is
an expected, degraded mode that the store reports at warning level when it
falls back to the local map.

Author: Refactored for clarity and maintainability
Date: 2025-12-13
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from agrotrack_cache.core.config.constants import SCAN_BATCH_SIZE
from agrotrack_cache.core.config.settings import Settings, get_settings
from agrotrack_cache.core.exceptions import CacheConnectionError, CacheKeyError
from agrotrack_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle, pooling, and startup retries
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Pool Configuration:
    - Max connections: REDIS_MAX_CONNECTIONS
    - Socket timeout: REDIS_SOCKET_TIMEOUT (a timeout surfaces as an error the
      store treats like any other backend failure)
    - Health check interval: REDIS_HEALTH_CHECK_INTERVAL
    - Decode responses: True (values are str, not bytes)
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Returns:
            redis.Redis: Connected Redis client

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        # Stale pool from an earlier attempt
        await self._release()

        redis_settings = self._settings.redis

        try:
            self._pool = ConnectionPool(
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                password=redis_settings.REDIS_PASSWORD,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)

            # Verify the pool actually reaches a server
            await self._client.ping()

            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage="REDIS.2",
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
            )

            return self._client

        except (ConnectionError, TimeoutError) as e:
            await self._release()
            raise CacheConnectionError.from_exception(
                e,
                message=f"Failed to connect to Redis: {e}",
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
            )

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        await self._release()
        logger.info("Redis disconnected", stage="REDIS.3")

    async def _release(self) -> None:
        if self._client:
            await self._client.aclose()
        if self._pool:
            await self._pool.disconnect()
        self._client = None
        self._pool = None
        self._is_connected = False

    async def ping(self) -> bool:
        """Check Redis connection health without raising."""
        if not self._client:
            return False
        try:
            await self._client.ping()
            self._is_connected = True
            return True
        except RedisError:
            self._is_connected = False
            return False

    def get_client(self) -> redis.Redis | None:
        """Get the Redis client instance."""
        return self._client

    def is_connected(self) -> bool:
        """Check if connected to Redis."""
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTION
# Namespacing and error translation for every command
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent namespacing and error handling.

    Error Handling Strategy:
    - Connectivity failures become CacheConnectionError
    - Command failures become CacheKeyError
    - Both carry the logical key and the operation name in details
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "", scan_count: int = SCAN_BATCH_SIZE):
        self._redis = redis_client
        self._prefix = key_prefix
        self._scan_count = scan_count

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _strip(self, key: str) -> str:
        if self._prefix and key.startswith(self._prefix):
            return key[len(self._prefix):]
        return key

    @staticmethod
    def _translate(operation: str, e: RedisError, **details) -> CacheConnectionError | CacheKeyError:
        if isinstance(e, (ConnectionError, TimeoutError)):
            return CacheConnectionError.from_exception(
                e, message=f"Redis {operation} failed: {e}", operation=operation, **details
            )
        return CacheKeyError.from_exception(
            e, message=f"Redis {operation} failed: {e}", operation=operation, **details
        )

    # -------------------------------------------------------------------------
    # Basic Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """
        Get value from Redis.

        STAGE-REDIS.GET: Redis GET operation
        """
        try:
            return await self._redis.get(self._key(key))
        except RedisError as e:
            raise self._translate("GET", e, key=key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value in Redis.

        STAGE-REDIS.SET: Redis SET operation (SET ... EX ttl when ttl given)
        """
        try:
            result = await self._redis.set(self._key(key), value, ex=ttl or None)
            return bool(result)
        except RedisError as e:
            raise self._translate("SET", e, key=key)

    async def delete(self, *keys: str) -> int:
        """
        Delete keys from Redis.

        STAGE-REDIS.DEL: Redis DELETE operation
        """
        if not keys:
            return 0
        try:
            return await self._redis.delete(*(self._key(k) for k in keys))
        except RedisError as e:
            raise self._translate("DEL", e, keys=list(keys))

    async def keys(self, pattern: str) -> list[str]:
        """
        List logical keys matching a glob pattern.

        STAGE-REDIS.SCAN: Incremental SCAN instead of KEYS so a large
        key-space never blocks the server.
        """
        try:
            found = []
            async for key in self._redis.scan_iter(match=self._key(pattern), count=self._scan_count):
                found.append(self._strip(key))
            return found
        except RedisError as e:
            raise self._translate("SCAN", e, pattern=pattern)

    async def exists(self, *keys: str) -> int:
        """Count how many of the keys exist."""
        try:
            return await self._redis.exists(*(self._key(k) for k in keys))
        except RedisError as e:
            raise self._translate("EXISTS", e, keys=list(keys))

    async def expire(self, key: str, ttl: int) -> bool:
        """Set TTL on a key."""
        try:
            return bool(await self._redis.expire(self._key(key), ttl))
        except RedisError as e:
            raise self._translate("EXPIRE", e, key=key)

    async def ttl(self, key: str) -> int:
        """TTL in seconds, -1 if no TTL, -2 if key doesn't exist."""
        try:
            return await self._redis.ttl(self._key(key))
        except RedisError as e:
            raise self._translate("TTL", e, key=key)

    # -------------------------------------------------------------------------
    # Set Operations (tag index)
    # -------------------------------------------------------------------------

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set."""
        try:
            return await self._redis.sadd(self._key(key), *members)
        except RedisError as e:
            raise self._translate("SADD", e, key=key)

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set."""
        try:
            return set(await self._redis.smembers(self._key(key)))
        except RedisError as e:
            raise self._translate("SMEMBERS", e, key=key)

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def flushdb(self) -> bool:
        """
        Remove every key in this client's namespace.

        With a key prefix only the namespaced keys are removed, so a Redis
        database shared with other services is left alone. Without a prefix
        the whole database is flushed.
        """
        try:
            if not self._prefix:
                return bool(await self._redis.flushdb())

            batch: list[str] = []
            async for key in self._redis.scan_iter(match=f"{self._prefix}*", count=self._scan_count):
                batch.append(key)
                if len(batch) >= self._scan_count:
                    await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                await self._redis.delete(*batch)
            return True
        except RedisError as e:
            raise self._translate("FLUSH", e)

    async def info(self) -> dict[str, Any]:
        """Server INFO as a dict (used_memory_human, redis_version, ...)."""
        try:
            return await self._redis.info()
        except RedisError as e:
            raise self._translate("INFO", e)


# =============================================================================
# LAYER 3: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client implementing the DistributedBackend capability.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        await client.set("plant:42", '{"name": "Fern"}', ttl=1800)
        value = await client.get("plant:42")

        await client.disconnect()
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize Redis client.

        STAGE-REDIS.1: Client initialization
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._executor: OperationExecutor | None = None

    async def connect(self) -> None:
        """
        Connect with exponential backoff.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheConnectionError: If every attempt fails
        """
        attempts = max(1, self._settings.redis.REDIS_CONNECT_RETRIES)

        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=0.5, max=5.0),
            retry=retry_if_exception_type(CacheConnectionError),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                "Redis connection attempt failed, retrying",
                stage="REDIS.2.RETRY",
                attempt=retry_state.attempt_number,
                max_attempts=attempts,
            ),
        )
        async def _connect_with_retry():
            return await self._conn_mgr.connect()

        self._open_executor(await _connect_with_retry())

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        """
        True when Redis answers PING.

        A client whose startup connect failed makes a single connection
        attempt here, so a later ping can bring Redis back into service.
        """
        if self._executor is None:
            try:
                self._open_executor(await self._conn_mgr.connect())
            except CacheConnectionError:
                return False
            return True
        return await self._conn_mgr.ping()

    def _open_executor(self, client: redis.Redis) -> None:
        self._executor = OperationExecutor(
            client,
            key_prefix=self._settings.cache.CACHE_KEY_PREFIX,
            scan_count=self._settings.cache.CACHE_SCAN_COUNT,
        )

    def is_connected(self) -> bool:
        """Connection flag as last observed."""
        return self._conn_mgr.is_connected()

    def _require_executor(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError("Redis client is not connected")
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._require_executor().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self._require_executor().set(key, value, ttl)

    async def delete(self, *keys: str) -> int:
        return await self._require_executor().delete(*keys)

    async def keys(self, pattern: str) -> list[str]:
        return await self._require_executor().keys(pattern)

    async def exists(self, *keys: str) -> int:
        return await self._require_executor().exists(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        return await self._require_executor().expire(key, ttl)

    async def ttl(self, key: str) -> int:
        return await self._require_executor().ttl(key)

    async def sadd(self, key: str, *members: str) -> int:
        return await self._require_executor().sadd(key, *members)

    async def smembers(self, key: str) -> set[str]:
        return await self._require_executor().smembers(key)

    async def flushdb(self) -> bool:
        return await self._require_executor().flushdb()

    async def info(self) -> dict[str, Any]:
        return await self._require_executor().info()
