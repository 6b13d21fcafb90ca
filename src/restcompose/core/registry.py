"""
Route registry - maps (path pattern, HTTP verb) to registered operations.

Built once at startup and sealed; read-only afterwards, so it is shared by all
batches without locking.

Usage:
    from restcompose.core.registry import RouteRegistry
    from restcompose.runtime.resolver import InstanceRegistry

    instances = InstanceRegistry({UserService: UserService()})
    registry = RouteRegistry(instances)
    registry.register(adapt_routes([
        RouteRegistration("/users/:id", UserService, "find_by_id", "GET"),
    ]))

    resolved = registry.resolve("/users/42", "GET")
    resolved.params  # {"id": "42"}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from .defs import HANDLER_TYPES, HTTP_METHODS, OperationDescriptor, ResolvedRoute, RouteEntry
from .errors import RegistryError

if TYPE_CHECKING:
    from ..runtime.resolver import InstanceProvider

logger = logging.getLogger(__name__)


class RouteRegistry:
    """
    Route-to-operation table with startup validation.

    Registration rules:
    - path is a non-empty string starting with '/'
    - handler class is present, method name is a non-empty string
    - verb is one of GET, POST, PUT, PATCH, DELETE
    - no two entries share the same (path, verb)
    - every handler resolves to an instance with a callable method
    """

    def __init__(self, provider: "InstanceProvider"):
        """
        Initialize registry.

        Args:
            provider: Source of live handler instances
        """
        self.provider = provider
        self._routes: dict[str, OperationDescriptor] = {}
        self._patterns: list[tuple[str, OperationDescriptor]] = []
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register(self, entries: list[RouteEntry]) -> None:
        """
        Validate and register route entries, then seal the registry.

        Args:
            entries: Route entries to register

        Raises:
            RegistryError: On any invalid entry, duplicate (path, verb) pairs
                or unresolvable handlers. The registry stays unsealed.
        """
        if self._initialized:
            raise RegistryError(
                "RouteRegistry has already been initialized. Cannot register additional routes.",
                code="ALREADY_INITIALIZED",
            )

        routes: dict[str, OperationDescriptor] = {}
        patterns: list[tuple[str, OperationDescriptor]] = []
        duplicates: list[str] = []

        for entry in entries:
            self._validate_entry(entry)

            route_key = self._route_key(entry.path, entry.handler.http_method)
            if route_key in routes:
                if route_key not in duplicates:
                    duplicates.append(route_key)
                continue

            routes[route_key] = entry.handler
            if self._has_params(entry.path):
                patterns.append((entry.path, entry.handler))

        if duplicates:
            raise RegistryError(
                f"Duplicate route registrations found: {', '.join(duplicates)}",
                code="DUPLICATE_ROUTES",
                duplicates=duplicates,
            )

        self._validate_handlers(entries)

        self._routes = routes
        self._patterns = patterns
        self._initialized = True
        logger.info(f"Route registry sealed with {len(routes)} routes")

    def resolve(self, path: str, http_method: str) -> Optional[ResolvedRoute]:
        """
        Resolve a concrete path to an operation.

        Exact match first, then a scan of parameterized patterns for the verb.

        Returns:
            ResolvedRoute, or None when nothing matches

        Raises:
            RegistryError: If called before register() completed
        """
        if not self._initialized:
            raise RegistryError(
                "RouteRegistry has not been initialized. Call register() first.",
                code="NOT_INITIALIZED",
            )

        exact = self._routes.get(self._route_key(path, http_method))
        if exact is not None:
            instance = self._get_instance(exact)
            if instance is None:
                return None
            return ResolvedRoute(metadata=exact, instance=instance, params={}, pattern=path)

        for pattern, metadata in self._patterns:
            if metadata.http_method != http_method:
                continue

            params = self.match_path(pattern, path)
            if params is None:
                continue

            instance = self._get_instance(metadata)
            if instance is None:
                continue
            return ResolvedRoute(metadata=metadata, instance=instance, params=params, pattern=pattern)

        return None

    def has(self, path: str, http_method: str) -> bool:
        """Check whether a route resolves."""
        return self.resolve(path, http_method) is not None

    def routes(self) -> list[RouteEntry]:
        """All registered routes (a copy)."""
        entries = []
        for route_key, metadata in self._routes.items():
            _, path = route_key.split(":", 1)
            entries.append(RouteEntry(path=path, handler=metadata))
        return entries

    def __len__(self) -> int:
        return len(self._routes)

    def clear(self) -> None:
        """Drop all routes and unseal (tests only)."""
        self._routes = {}
        self._patterns = []
        self._initialized = False

    # -------------------------------------------------------------------------
    # Path matching
    # -------------------------------------------------------------------------

    @staticmethod
    def match_path(pattern: str, actual_path: str) -> Optional[dict[str, str]]:
        """
        Match a ':param' pattern against a concrete path.

        Returns:
            Extracted parameters, or None on segment count/literal mismatch
        """
        pattern_parts = pattern.split("/")
        actual_parts = actual_path.split("/")

        if len(pattern_parts) != len(actual_parts):
            return None

        params: dict[str, str] = {}
        for pattern_part, actual_part in zip(pattern_parts, actual_parts):
            if pattern_part.startswith(":"):
                name = pattern_part[1:]
                if not name:
                    return None
                params[name] = actual_part
            elif pattern_part != actual_part:
                return None

        return params

    @staticmethod
    def _has_params(path: str) -> bool:
        return any(part.startswith(":") for part in path.split("/"))

    @staticmethod
    def _route_key(path: str, http_method: str) -> str:
        return f"{http_method}:{path}"

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate_entry(self, entry: RouteEntry) -> None:
        path = entry.path
        handler = entry.handler

        if not path or not isinstance(path, str):
            raise RegistryError("Route path must be a non-empty string", path=path, code="INVALID_PATH")

        if not path.startswith("/"):
            raise RegistryError(
                f"Route path must start with '/': {path}", path=path, code="INVALID_PATH_FORMAT"
            )

        if handler is None or handler.handler_class is None:
            raise RegistryError("Handler class is required", path=path, code="MISSING_HANDLER_CLASS")

        if not handler.method_name or not isinstance(handler.method_name, str):
            raise RegistryError(
                "Handler method name must be a non-empty string", path=path, code="INVALID_METHOD_NAME"
            )

        if handler.handler_type not in HANDLER_TYPES:
            raise RegistryError(
                f"Handler type must be 'service' or 'controller', got: {handler.handler_type}",
                path=path,
                code="INVALID_HANDLER_TYPE",
            )

        if handler.http_method not in HTTP_METHODS:
            raise RegistryError(
                f"HTTP method must be one of: {', '.join(HTTP_METHODS)}, got: {handler.http_method}",
                path=path,
                code="INVALID_HTTP_METHOD",
            )

    def _validate_handlers(self, entries: list[RouteEntry]) -> None:
        """Check that every handler resolves to an instance with a callable method."""
        errors: list[str] = []

        for entry in entries:
            metadata = entry.handler
            try:
                instance = self.provider.get(metadata.handler_class)
            except Exception as e:
                errors.append(
                    f"Failed to resolve handler {metadata.class_name} for path: {entry.path}. Error: {e}"
                )
                continue

            if instance is None:
                errors.append(
                    f"Handler class {metadata.class_name} not found for path: {entry.path}"
                )
                continue

            if not callable(getattr(instance, metadata.method_name, None)):
                errors.append(
                    f"Method '{metadata.method_name}' not found or not callable on "
                    f"{metadata.class_name} for path: {entry.path}"
                )

        if errors:
            raise RegistryError(
                "Handler validation failed:\n" + "\n".join(errors),
                code="HANDLER_VALIDATION_FAILED",
            )

    def _get_instance(self, metadata: OperationDescriptor) -> Any:
        try:
            return self.provider.get(metadata.handler_class)
        except Exception as e:
            logger.warning(f"Could not resolve instance of {metadata.class_name}: {e}")
            return None
