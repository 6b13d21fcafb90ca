"""
Redis-backed CacheAdapter.

Lets compose results outlive a single request. Values are stored as JSON
under "<prefix>:<fingerprint>" with a TTL. Pydantic models and dataclasses are
encoded to plain JSON data first, so a later hit returns their dict form.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder

from .client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)


class RedisCacheAdapter:
    """
    External cache adapter for RequestCache.

    Usage:
        adapter = RedisCacheAdapter(prefix="compose", ttl=60)
        executor = ComposeExecutor(registry, cache_adapter=adapter)
    """

    def __init__(
        self,
        client: Optional[RedisClient] = None,
        prefix: str = "compose",
        ttl: Optional[int] = 60,
    ):
        """
        Initialize adapter.

        Args:
            client: Redis client (default: global client)
            prefix: Key prefix
            ttl: Time to live in seconds (None = no expiry)
        """
        self.client = client or get_redis_client()
        self.prefix = prefix
        self.ttl = ttl

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Any:
        """Decoded value, None on a miss"""
        data = await self.client.get(self._make_key(key))
        if data is None:
            return None
        return json.loads(data)

    async def set(self, key: str, value: Any) -> None:
        full_key = self._make_key(key)
        payload = json.dumps(jsonable_encoder(value), ensure_ascii=False)
        await self.client.set(full_key, payload, ex=self.ttl)
        logger.debug(f"Cached {full_key} (TTL: {self.ttl}s)")

    async def has(self, key: str) -> bool:
        return bool(await self.client.exists(self._make_key(key)))

    async def delete(self, key: str) -> None:
        await self.client.delete(self._make_key(key))

    async def clear(self) -> None:
        """Delete every key under the prefix (uses SCAN)."""
        count = 0
        async for full_key in self.client.scan_iter(match=f"{self.prefix}:*"):
            await self.client.delete(full_key)
            count += 1
        logger.info(f"Cleared {count} cached compose results under {self.prefix}:*")
