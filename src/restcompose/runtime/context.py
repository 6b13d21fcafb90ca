"""
Request context for compose execution.

A RequestContext lives for exactly one unit of work (an HTTP request, a batch
or one sub-query). It is propagated implicitly through contextvars, so every
asyncio task spawned inside the unit sees it, and each task can swap in its
own context without affecting siblings. The per-request cache is cleared when
the unit exits, on success or failure.

Usage:
    contexts = RequestContextService()
    ctx = create_context(request_id="req-1", method="POST", path="/compose")

    async def work():
        contexts.current().cache["k"] = "v"

    await contexts.run_async(ctx, work)   # ctx.cache is empty afterwards
"""

from __future__ import annotations

import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


@dataclass
class FieldsContext:
    """Field selection state for one unit of work."""
    fields: list[str]
    max_depth: int


@dataclass
class RequestContext:
    """
    Per-request state.

    Contains:
    - start_time: monotonic clock reading at creation (seconds)
    - cache: transient key/value store, cleared on exit
    - fields: field selection, if the caller asked for one
    - request_id / method / path / metadata: tracing info
    """
    start_time: float = field(default_factory=time.monotonic)
    cache: dict[str, Any] = field(default_factory=dict)
    fields: Optional[FieldsContext] = None
    request_id: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000


_current: ContextVar[Optional[RequestContext]] = ContextVar("restcompose_request_context", default=None)


def generate_request_id(prefix: str = "req") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


def create_context(
    request_id: Optional[str] = None,
    method: Optional[str] = None,
    path: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> RequestContext:
    """Create a fresh context with an empty cache."""
    return RequestContext(
        request_id=request_id,
        method=method,
        path=path,
        metadata=dict(metadata or {}),
    )


def child_context(
    parent: Optional[RequestContext],
    request_id: Optional[str] = None,
    method: Optional[str] = None,
    path: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> RequestContext:
    """
    Context for a sub-query.

    Parent metadata is copied, never shared; the child gets its own cache
    and field state.
    """
    merged: dict[str, Any] = {}
    if parent is not None:
        merged.update(parent.metadata)
        if parent.request_id:
            merged.setdefault("parent_request_id", parent.request_id)
    merged.update(metadata or {})
    return create_context(request_id=request_id, method=method, path=path, metadata=merged)


def current_context() -> Optional[RequestContext]:
    """Context of the running unit of work, or None outside any."""
    return _current.get()


class RequestContextService:
    """Runs callables inside a RequestContext and exposes the active one."""

    def run(self, context: RequestContext, callback: Callable[[], T]) -> T:
        """Run a sync callback within context; the cache is cleared afterwards."""
        token = _current.set(context)
        try:
            return callback()
        finally:
            context.cache.clear()
            _current.reset(token)

    async def run_async(self, context: RequestContext, callback: Callable[[], Awaitable[T]]) -> T:
        """Run an async callback within context; the cache is cleared afterwards."""
        token = _current.set(context)
        try:
            return await callback()
        finally:
            context.cache.clear()
            _current.reset(token)

    def current(self) -> Optional[RequestContext]:
        return _current.get()

    def has_context(self) -> bool:
        return _current.get() is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Read an attribute of the active context."""
        context = _current.get()
        if context is None:
            return default
        return getattr(context, key, default)

    def set(self, key: str, value: Any) -> None:
        """Set an attribute of the active context; no-op outside a context."""
        context = _current.get()
        if context is not None:
            setattr(context, key, value)

    def get_cache(self) -> Optional[dict[str, Any]]:
        return self.get("cache")

    def get_fields(self) -> Optional[FieldsContext]:
        return self.get("fields")

    def set_fields(self, fields: list[str], max_depth: int) -> None:
        self.set("fields", FieldsContext(fields=fields, max_depth=max_depth))

    @property
    def start_time(self) -> Optional[float]:
        return self.get("start_time")

    def duration_ms(self) -> Optional[float]:
        context = _current.get()
        if context is None:
            return None
        return context.elapsed_ms()
