"""
Messaging module - Redis-backed external cache.

Usage:
    from restcompose.messaging import RedisCacheAdapter, init_redis

    await init_redis("redis://redis:6379")
    gateway = ComposeGateway(routes, instances, cache_adapter=RedisCacheAdapter(ttl=60))
"""

from __future__ import annotations

from .cache import RedisCacheAdapter
from .client import RedisClient, close_redis, get_redis_client, init_redis

__all__ = [
    "RedisClient",
    "RedisCacheAdapter",
    "get_redis_client",
    "init_redis",
    "close_redis",
]
