"""
restcompose - batch many REST-style operations into one request.

A caller posts aliased sub-queries; each is routed in-process to a registered
service or controller method, executed concurrently under batch limits,
deduplicated through a request-scoped cache and optionally projected with
"@fields".

Usage:
    from restcompose import ComposeGateway, RouteRegistration

    gateway = ComposeGateway(
        routes=[RouteRegistration("/users/:id", UserService, "find_by_id", "GET")],
        instances={UserService: UserService()},
    )
    app = gateway.app
"""

from __future__ import annotations

from .api import FieldSelectionRoute
from .config import OrchestratorConfig, load_config
from .core import (
    BatchSizeError,
    ComposeError,
    ComposeQuery,
    ComposeRequest,
    ConfigError,
    CostLimitError,
    FieldSelector,
    HTTPError,
    NotFoundError,
    OperationDescriptor,
    PayloadTooLargeError,
    QueryTimeoutError,
    RegistryError,
    RequestValidator,
    ResolvedRoute,
    RouteEntry,
    RouteLimitError,
    RouteRegistration,
    RouteRegistry,
    ValidationError,
    adapt_routes,
    generate_cache_key,
    select_fields,
)
from .gateway import ComposeGateway
from .runtime import (
    MISSING,
    CacheAdapter,
    ComposeExecutor,
    CompositeCacheAdapter,
    InMemoryCacheAdapter,
    InstanceRegistry,
    MethodInvoker,
    RequestCache,
    RequestContext,
    RequestContextService,
    current_context,
)

__version__ = "0.1.0"

__all__ = [
    # Gateway
    "ComposeGateway",
    "FieldSelectionRoute",
    # Config
    "OrchestratorConfig",
    "load_config",
    # Definitions
    "RouteRegistration",
    "RouteEntry",
    "OperationDescriptor",
    "ResolvedRoute",
    "adapt_routes",
    # Errors
    "ComposeError",
    "ConfigError",
    "RegistryError",
    "ValidationError",
    "BatchSizeError",
    "PayloadTooLargeError",
    "HTTPError",
    "NotFoundError",
    "RouteLimitError",
    "QueryTimeoutError",
    "CostLimitError",
    # Envelope
    "ComposeQuery",
    "ComposeRequest",
    "RequestValidator",
    # Core
    "RouteRegistry",
    "FieldSelector",
    "select_fields",
    "generate_cache_key",
    # Runtime
    "RequestContext",
    "RequestContextService",
    "current_context",
    "InstanceRegistry",
    "MethodInvoker",
    "MISSING",
    "CacheAdapter",
    "RequestCache",
    "InMemoryCacheAdapter",
    "CompositeCacheAdapter",
    "ComposeExecutor",
]
