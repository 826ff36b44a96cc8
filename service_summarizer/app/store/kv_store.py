"""
Key-value store contract shared by the summary cache and the rate limiter.

The store is the only cross-instance state of the gateway. Backends translate
their own connection and protocol failures into ``StoreUnavailableError`` so
callers can degrade instead of failing the request.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import StoreUnavailableError
from shared.logging import get_logger

STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class KeyValueStore(ABC):
    """Networked key-value store with TTL support."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored at ``key`` or None."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` at ``key``, expiring after ``ttl_seconds``."""

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> int:
        """Atomically increment the counter at ``key`` and return the new count."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed implementation of the store contract."""

    def __init__(self, redis_url: str, socket_timeout: float = 2.0):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.logger = get_logger("summarizer.store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                health_check_interval=30,
            )
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        try:
            redis_client = await self._get_redis()
            value = await redis_client.get(key)
        except STORE_ERRORS as e:
            raise StoreUnavailableError("get", details={"error": str(e)}) from e

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            redis_client = await self._get_redis()
            await redis_client.setex(key, max(1, int(ttl_seconds)), value)
        except STORE_ERRORS as e:
            raise StoreUnavailableError("set", details={"error": str(e)}) from e

    async def increment(self, key: str, window_seconds: int) -> int:
        try:
            redis_client = await self._get_redis()
            async with redis_client.pipeline(transaction=True) as pipeline:
                pipeline.incr(key)
                pipeline.expire(key, max(1, int(window_seconds)))
                results = await pipeline.execute()
        except STORE_ERRORS as e:
            raise StoreUnavailableError("increment", details={"error": str(e)}) from e

        return int(results[0])

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except STORE_ERRORS as e:
            self.logger.warning("Store ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
