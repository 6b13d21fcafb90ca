"""
Runtime module - compose execution pipeline.
"""

from __future__ import annotations

from .cache import MISSING, CacheAdapter, CompositeCacheAdapter, InMemoryCacheAdapter, RequestCache
from .context import (
    FieldsContext,
    RequestContext,
    RequestContextService,
    child_context,
    create_context,
    current_context,
)
from .executor import ComposeExecutor
from .invoker import InvocationError, InvocationResult, MethodInvoker
from .resolver import InstanceProvider, InstanceRegistry

__all__ = [
    "RequestContext",
    "FieldsContext",
    "RequestContextService",
    "create_context",
    "child_context",
    "current_context",
    "InstanceProvider",
    "InstanceRegistry",
    "MethodInvoker",
    "InvocationResult",
    "InvocationError",
    "MISSING",
    "CacheAdapter",
    "RequestCache",
    "InMemoryCacheAdapter",
    "CompositeCacheAdapter",
    "ComposeExecutor",
]
