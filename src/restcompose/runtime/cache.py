"""
Request-level cache.

Deduplicates identical sub-queries within one request. Entries live in the
owning RequestContext's cache dict, so they disappear when the context exits.
An optional external CacheAdapter (e.g. Redis) can sit behind it: misses fall
through to the adapter and adapter hits are backfilled into the request store.

Adapter methods may be sync or async.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Optional, Protocol, runtime_checkable

from ..core.cache_key import generate_cache_key
from .context import current_context

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for 'not cached' (a cached None is a real value)."""

    _instance: Optional[_Missing] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@runtime_checkable
class CacheAdapter(Protocol):
    """
    External cache interface.

    get() returns None on a miss. delete() and clear() are optional.
    """

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> Any: ...

    def has(self, key: str) -> Any: ...


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RequestCache:
    """
    Per-request cache with optional adapter fallback.

    Usage:
        cache = RequestCache(context.cache, adapter=redis_adapter)
        key = cache.generate_key("/users/:id", body, fields, params)

        value = await cache.get(key)
        if value is MISSING:
            value = await compute()
            await cache.set(key, value)
    """

    def __init__(self, store: Optional[dict[str, Any]] = None, adapter: Optional[CacheAdapter] = None):
        """
        Initialize cache.

        Args:
            store: Request-scoped dict (normally RequestContext.cache).
                Defaults to the active context's cache, or a private dict.
            adapter: Optional external cache
        """
        if store is None:
            context = current_context()
            store = context.cache if context is not None else {}
        self.store = store
        self.adapter = adapter

    @staticmethod
    def generate_key(
        path: str,
        body: Any = None,
        fields: Optional[list[str]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> str:
        return generate_cache_key(path, body, fields, params)

    async def get(self, key: str) -> Any:
        """Cached value, or MISSING."""
        if key in self.store:
            logger.debug(f"Cache HIT: {key}")
            return self.store[key]

        if self.adapter is not None:
            try:
                value = await _resolve(self.adapter.get(key))
            except Exception as e:
                logger.warning(f"Cache adapter read error for {key}: {e}")
                value = None

            if value is not None:
                logger.debug(f"Cache adapter HIT: {key}")
                self.store[key] = value
                return value

        logger.debug(f"Cache MISS: {key}")
        return MISSING

    async def set(self, key: str, value: Any) -> None:
        """Store in the request store and, if configured, in the adapter."""
        self.store[key] = value

        if self.adapter is not None:
            try:
                await _resolve(self.adapter.set(key, value))
            except Exception as e:
                logger.warning(f"Cache adapter write error for {key}: {e}")

    async def has(self, key: str) -> bool:
        if key in self.store:
            return True

        if self.adapter is not None:
            try:
                return bool(await _resolve(self.adapter.has(key)))
            except Exception as e:
                logger.warning(f"Cache adapter lookup error for {key}: {e}")
        return False

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)

        delete = getattr(self.adapter, "delete", None)
        if delete is not None:
            await _resolve(delete(key))

    def clear(self) -> None:
        """Clear the request store (the adapter is left alone)."""
        self.store.clear()

    def size(self) -> int:
        return len(self.store)

    def __len__(self) -> int:
        return len(self.store)


# =============================================================================
# Adapters
# =============================================================================


class InMemoryCacheAdapter:
    """Process-local adapter, mostly for tests."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class CompositeCacheAdapter:
    """
    Chains adapters: the first hit wins and is copied into the others.

    Usage:
        adapter = CompositeCacheAdapter([InMemoryCacheAdapter(), redis_adapter])
    """

    def __init__(self, adapters: list[CacheAdapter]):
        self.adapters = list(adapters)

    async def get(self, key: str) -> Any:
        for adapter in self.adapters:
            value = await _resolve(adapter.get(key))
            if value is None:
                continue
            for other in self.adapters:
                if other is not adapter:
                    await _resolve(other.set(key, value))
            return value
        return None

    async def set(self, key: str, value: Any) -> None:
        await asyncio.gather(*(_resolve(adapter.set(key, value)) for adapter in self.adapters))

    async def has(self, key: str) -> bool:
        for adapter in self.adapters:
            if await _resolve(adapter.has(key)):
                return True
        return False

    async def delete(self, key: str) -> None:
        for adapter in self.adapters:
            delete = getattr(adapter, "delete", None)
            if delete is not None:
                await _resolve(delete(key))

    async def clear(self) -> None:
        for adapter in self.adapters:
            clear = getattr(adapter, "clear", None)
            if clear is not None:
                await _resolve(clear())
