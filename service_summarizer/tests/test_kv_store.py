"""
Unit tests for the Redis-backed key-value store.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shared.errors import StoreUnavailableError
from service_summarizer.app.store.kv_store import RedisKeyValueStore


class TestRedisKeyValueStore:
    """Test cases for RedisKeyValueStore."""

    @pytest.fixture
    def kv_store(self):
        return RedisKeyValueStore("redis://localhost:6379/0", socket_timeout=0.5)

    @pytest.fixture
    def mock_redis(self):
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_get(self, kv_store, mock_redis):
        mock_redis.get.return_value = "cached"

        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=mock_redis)):
            assert await kv_store.get("summary:abc") == "cached"

        mock_redis.get.assert_called_once_with("summary:abc")

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self, kv_store, mock_redis):
        mock_redis.get.return_value = b"cached"

        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=mock_redis)):
            assert await kv_store.get("summary:abc") == "cached"

    @pytest.mark.asyncio
    async def test_set_uses_expiry(self, kv_store, mock_redis):
        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=mock_redis)):
            await kv_store.set("summary:abc", "{}", 259200)

        mock_redis.setex.assert_called_once_with("summary:abc", 259200, "{}")

    @pytest.mark.asyncio
    async def test_increment_runs_transaction(self, kv_store):
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(return_value=[4, True])
        redis_client = MagicMock()
        redis_client.pipeline.return_value.__aenter__ = AsyncMock(return_value=pipeline)
        redis_client.pipeline.return_value.__aexit__ = AsyncMock(return_value=False)

        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=redis_client)):
            count = await kv_store.increment("rate_limit:summarize:1.2.3.4:1", 60)

        assert count == 4
        redis_client.pipeline.assert_called_once_with(transaction=True)
        pipeline.incr.assert_called_once_with("rate_limit:summarize:1.2.3.4:1")
        pipeline.expire.assert_called_once_with("rate_limit:summarize:1.2.3.4:1", 60)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation,args", [
        ("get", ("summary:abc",)),
        ("set", ("summary:abc", "{}", 60)),
    ])
    async def test_connection_errors_become_store_unavailable(self, kv_store, mock_redis, operation, args):
        getattr(mock_redis, "get").side_effect = RedisConnectionError("connection refused")
        getattr(mock_redis, "setex").side_effect = RedisConnectionError("connection refused")

        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=mock_redis)):
            with pytest.raises(StoreUnavailableError) as exc_info:
                await getattr(kv_store, operation)(*args)

        assert exc_info.value.code == "STORE_UNAVAILABLE"
        assert "connection refused" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_timeout_becomes_store_unavailable(self, kv_store):
        redis_client = MagicMock()
        redis_client.pipeline.side_effect = TimeoutError("timed out")

        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=redis_client)):
            with pytest.raises(StoreUnavailableError):
                await kv_store.increment("rate_limit:summarize:1.2.3.4:1", 60)

    @pytest.mark.asyncio
    async def test_ping_failure_returns_false(self, kv_store, mock_redis):
        mock_redis.ping.side_effect = RedisConnectionError("down")

        with patch.object(kv_store, "_get_redis", AsyncMock(return_value=mock_redis)):
            assert await kv_store.ping() is False

    @pytest.mark.asyncio
    async def test_close_releases_connection(self, kv_store, mock_redis):
        kv_store._redis = mock_redis

        await kv_store.close()

        mock_redis.aclose.assert_awaited_once()
        assert kv_store._redis is None
