"""
Instance providers - supply live receivers for registered handler classes.

The orchestrator never constructs handler objects itself. Whatever wires the
application (a DI container, a FastAPI lifespan hook, a test) hands over an
InstanceProvider and the registry asks it for the receiver of each operation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class InstanceProvider(Protocol):
    """Anything that can turn a handler class into a live instance."""

    def get(self, handler_class: type) -> Any:
        """Return the instance for handler_class, or None if unknown."""
        ...


class InstanceRegistry:
    """
    Dict-backed InstanceProvider.

    Usage:
        instances = InstanceRegistry()
        instances.add(UserService, UserService(repo))
        instances.add_factory(OrderService, lambda: OrderService(db))

        instances.get(UserService)  # -> the UserService instance
    """

    def __init__(self, instances: Optional[dict[type, Any]] = None):
        self._instances: dict[type, Any] = dict(instances or {})
        self._factories: dict[type, Callable[[], Any]] = {}

    def add(self, handler_class: type, instance: Any) -> None:
        """Register a ready instance."""
        self._instances[handler_class] = instance

    def add_factory(self, handler_class: type, factory: Callable[[], Any]) -> None:
        """Register a zero-arg factory; it is called once, on first lookup."""
        self._factories[handler_class] = factory

    def get(self, handler_class: type) -> Any:
        if handler_class in self._instances:
            return self._instances[handler_class]

        factory = self._factories.get(handler_class)
        if factory is None:
            return None

        instance = factory()
        self._instances[handler_class] = instance
        logger.debug(f"Instantiated {handler_class.__name__} from factory")
        return instance

    def __contains__(self, handler_class: type) -> bool:
        return handler_class in self._instances or handler_class in self._factories
