"""
Unit Tests for RedisClient

Redis itself is mocked: these tests cover key namespacing, error
translation, startup retries and the reconnect-on-ping behavior.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError, TimeoutError as RedisTimeoutError

from agrotrack_cache.core.exceptions import CacheConnectionError, CacheKeyError
from agrotrack_cache.core.interfaces.cache import DistributedBackend
from agrotrack_cache.infrastructure.cache.redis_client import ConnectionManager, OperationExecutor, RedisClient
from tests.test_fixtures.cache_factory import CacheTestFactory


async def _scan(*keys):
    for key in keys:
        yield key


@pytest.fixture
def mock_redis():
    client = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.mark.unit
class TestOperationExecutor:
    """Namespacing and error translation."""

    @pytest.mark.asyncio
    async def test_get_prefixes_key(self, mock_redis):
        mock_redis.get.return_value = '{"name":"Fern"}'
        executor = OperationExecutor(mock_redis, key_prefix="agrotrack:")

        assert await executor.get("plant:1") == '{"name":"Fern"}'
        mock_redis.get.assert_awaited_once_with("agrotrack:plant:1")

    @pytest.mark.asyncio
    async def test_set_with_and_without_ttl(self, mock_redis):
        executor = OperationExecutor(mock_redis, key_prefix="agrotrack:")

        await executor.set("plant:1", "v", ttl=60)
        await executor.set("plant:2", "v")

        mock_redis.set.assert_any_await("agrotrack:plant:1", "v", ex=60)
        mock_redis.set.assert_any_await("agrotrack:plant:2", "v", ex=None)

    @pytest.mark.asyncio
    async def test_keys_strips_prefix(self, mock_redis):
        mock_redis.scan_iter = MagicMock(return_value=_scan("agrotrack:plant:1", "agrotrack:plant:2"))
        executor = OperationExecutor(mock_redis, key_prefix="agrotrack:", scan_count=50)

        assert await executor.keys("plant:*") == ["plant:1", "plant:2"]
        mock_redis.scan_iter.assert_called_once_with(match="agrotrack:plant:*", count=50)

    @pytest.mark.asyncio
    async def test_delete_prefixes_every_key(self, mock_redis):
        mock_redis.delete.return_value = 2
        executor = OperationExecutor(mock_redis, key_prefix="p:")

        assert await executor.delete("a", "b") == 2
        mock_redis.delete.assert_awaited_once_with("p:a", "p:b")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RedisConnectionError("refused"), RedisTimeoutError("timed out")])
    async def test_connectivity_errors_become_connection_errors(self, mock_redis, error):
        mock_redis.get.side_effect = error
        executor = OperationExecutor(mock_redis)

        with pytest.raises(CacheConnectionError) as exc_info:
            await executor.get("plant:1")

        assert exc_info.value.details["operation"] == "GET"
        assert exc_info.value.details["key"] == "plant:1"

    @pytest.mark.asyncio
    async def test_command_errors_become_key_errors(self, mock_redis):
        mock_redis.sadd.side_effect = ResponseError("WRONGTYPE")
        executor = OperationExecutor(mock_redis)

        with pytest.raises(CacheKeyError):
            await executor.sadd("tag:plants", "plant:1")

    @pytest.mark.asyncio
    async def test_flushdb_with_prefix_only_removes_namespace(self, mock_redis):
        mock_redis.scan_iter = MagicMock(return_value=_scan("agrotrack:a", "agrotrack:b", "agrotrack:c"))
        executor = OperationExecutor(mock_redis, key_prefix="agrotrack:", scan_count=2)

        assert await executor.flushdb() is True

        mock_redis.flushdb.assert_not_called()
        mock_redis.delete.assert_any_await("agrotrack:a", "agrotrack:b")
        mock_redis.delete.assert_any_await("agrotrack:c")

    @pytest.mark.asyncio
    async def test_flushdb_without_prefix_flushes_database(self, mock_redis):
        mock_redis.flushdb.return_value = True
        executor = OperationExecutor(mock_redis)

        assert await executor.flushdb() is True
        mock_redis.flushdb.assert_awaited_once()


@pytest.mark.unit
class TestConnectionManager:
    """Pool lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_failure_raises_connection_error(self):
        settings = CacheTestFactory.settings()
        manager = ConnectionManager(settings)
        broken = AsyncMock()
        broken.ping.side_effect = RedisConnectionError("refused")

        with patch("agrotrack_cache.infrastructure.cache.redis_client.redis.Redis", return_value=broken):
            with pytest.raises(CacheConnectionError) as exc_info:
                await manager.connect()

        assert exc_info.value.details["host"] == settings.REDIS_HOST
        assert manager.is_connected() is False
        assert manager.get_client() is None
        broken.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ping_without_client(self):
        assert await ConnectionManager(CacheTestFactory.settings()).ping() is False


@pytest.mark.unit
class TestRedisClient:
    """Public client."""

    def test_satisfies_backend_protocol(self):
        assert isinstance(RedisClient(CacheTestFactory.settings()), DistributedBackend)

    @pytest.mark.asyncio
    async def test_operations_require_connection(self):
        client = RedisClient(CacheTestFactory.settings())

        with pytest.raises(CacheConnectionError):
            await client.get("plant:1")

    @pytest.mark.asyncio
    async def test_connect_retries_then_succeeds(self, mock_redis):
        client = RedisClient(CacheTestFactory.settings(REDIS_CONNECT_RETRIES=2))
        client._conn_mgr.connect = AsyncMock(side_effect=[CacheConnectionError("refused"), mock_redis])
        mock_redis.get.return_value = "1"

        await client.connect()

        assert client._conn_mgr.connect.await_count == 2
        assert await client.get("plant:1") == "1"
        mock_redis.get.assert_awaited_once_with("agrotrack:plant:1")

    @pytest.mark.asyncio
    async def test_connect_gives_up_after_retries(self):
        client = RedisClient(CacheTestFactory.settings(REDIS_CONNECT_RETRIES=1))
        client._conn_mgr.connect = AsyncMock(side_effect=CacheConnectionError("refused"))

        with pytest.raises(CacheConnectionError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_ping_reconnects_after_failed_startup(self, mock_redis):
        client = RedisClient(CacheTestFactory.settings())
        client._conn_mgr.connect = AsyncMock(side_effect=[CacheConnectionError("refused"), mock_redis])

        assert await client.ping() is False
        assert await client.ping() is True

        mock_redis.exists.return_value = 1
        assert await client.exists("plant:1") == 1
