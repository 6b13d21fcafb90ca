"""
Core dataclass definitions for the restcompose system.

These define how operations are registered: which class owns the method,
which method to call and which HTTP verb/path reach it.
"""

from __future__ import annotations


from dataclasses import dataclass, field
from typing import Any, Literal, Optional

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
HandlerType = Literal["service", "controller"]

# Resolution order used when a sub-query does not name a verb
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")
HANDLER_TYPES: tuple[str, ...] = ("service", "controller")


@dataclass(frozen=True)
class OperationDescriptor:
    """
    Identifies one registered capability.

    handler_type is informational only (service vs controller).
    """
    handler_class: type
    method_name: str
    http_method: str
    handler_type: str = "service"

    @property
    def class_name(self) -> str:
        return getattr(self.handler_class, "__name__", repr(self.handler_class))

    @property
    def qualified_name(self) -> str:
        """E.g. 'UserService.find_by_id'."""
        return f"{self.class_name}.{self.method_name}"


@dataclass(frozen=True)
class RouteEntry:
    """Path pattern (supports :param segments) bound to an operation."""
    path: str
    handler: OperationDescriptor


@dataclass
class ResolvedRoute:
    """A route matched against a concrete path, with its live receiver."""
    metadata: OperationDescriptor
    instance: Any
    params: dict[str, str] = field(default_factory=dict)
    pattern: Optional[str] = None

    @property
    def http_method(self) -> str:
        return self.metadata.http_method


# =============================================================================
# Public registration format
# =============================================================================


@dataclass
class RouteRegistration:
    """
    Public route registration.

    Example:
        RouteRegistration(
            path="/users/:id",
            handler=UserService,
            method="find_by_id",
            http_method="GET",
        )
    """
    path: str
    handler: type
    method: str
    http_method: str = "GET"


def infer_handler_type(handler_class: Any) -> str:
    """Classes whose name mentions 'controller' are controllers, the rest services."""
    class_name = getattr(handler_class, "__name__", "") or ""
    if "controller" in class_name.lower():
        return "controller"
    return "service"


def adapt_routes(routes: list[RouteRegistration]) -> list[RouteEntry]:
    """Convert public RouteRegistration list into registry RouteEntry list."""
    entries = []
    for route in routes:
        metadata = OperationDescriptor(
            handler_class=route.handler,
            method_name=route.method,
            http_method=route.http_method,
            handler_type=infer_handler_type(route.handler),
        )
        entries.append(RouteEntry(path=route.path, handler=metadata))
    return entries
