"""
Redis client for the external compose cache.

Provides a shared Redis connection used by RedisCacheAdapter.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Thin async Redis wrapper.

    Usage:
        client = RedisClient("redis://redis:6379")
        await client.connect()

        await client.set("key", "value", ex=60)
        value = await client.get("key")
    """

    def __init__(self, redis_url: Optional[str] = None, redis: Optional[aioredis.Redis] = None):
        """
        Initialize Redis client.

        Args:
            redis_url: Redis connection URL
            redis: Already-built connection (skips connect())
        """
        if redis_url is None and redis is None:
            raise ValueError("redis_url or redis is required")
        self.redis_url = redis_url
        self._redis = redis
        self._connected = redis is not None

    async def connect(self):
        """Connect to Redis"""
        if self._connected:
            return

        logger.info(f"Connecting to Redis: {self.redis_url}")
        self._redis = aioredis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        self._connected = True
        logger.info("Redis client connected")

    async def disconnect(self):
        """Disconnect from Redis"""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._connected = False
            logger.info("Redis client disconnected")

    @property
    def redis(self) -> aioredis.Redis:
        """Get underlying Redis connection"""
        if not self._connected or not self._redis:
            raise RuntimeError("Redis client not connected. Call await client.connect() first.")
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        """
        Set key-value pair.

        Args:
            key: Key name
            value: Value to store
            ex: Expiration time in seconds (TTL)
        """
        return await self.redis.set(key, value, ex=ex)

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys. Returns number of keys deleted."""
        return await self.redis.delete(*keys)

    async def exists(self, *keys: str) -> int:
        """Check if keys exist. Returns number of existing keys."""
        return await self.redis.exists(*keys)

    def scan_iter(self, match: str) -> AsyncIterator[str]:
        return self.redis.scan_iter(match=match)


_global_client: Optional[RedisClient] = None


def get_redis_client(redis_url: Optional[str] = None) -> RedisClient:
    """
    Get global Redis client instance.

    Args:
        redis_url: Redis URL (required on first call)
    """
    global _global_client
    if _global_client is None:
        if redis_url is None:
            raise ValueError("redis_url is required on first call")
        _global_client = RedisClient(redis_url)
    return _global_client


async def init_redis(redis_url: str) -> RedisClient:
    """Initialize and connect the global Redis client (application startup)."""
    client = get_redis_client(redis_url)
    await client.connect()
    return client


async def close_redis():
    """Close global Redis client"""
    global _global_client
    if _global_client:
        await _global_client.disconnect()
        _global_client = None
