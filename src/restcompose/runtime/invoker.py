"""
Method invoker - calls a resolved operation on its receiver.

Every failure mode (no receiver, missing or non-callable method, exception
raised by the handler) becomes an InvocationError instead of propagating.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from fastapi.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException

from ..core.defs import ResolvedRoute
from ..core.errors import ComposeError

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = 500


@dataclass
class InvocationResult:
    """Successful call."""
    result: Any
    success: bool = True


@dataclass
class InvocationError:
    """Failed call, normalized."""
    message: str
    status_code: int = INTERNAL_SERVER_ERROR
    original_error: Optional[BaseException] = None
    success: bool = False


InvocationOutcome = Union[InvocationResult, InvocationError]


class MethodInvoker:
    """
    Invokes handler methods with the receiver bound.

    Usage:
        invoker = MethodInvoker()
        outcome = await invoker.invoke(resolved_route, [params, query, body])

        if not outcome.success:
            raise HTTPError(outcome.message, outcome.status_code)
        return outcome.result
    """

    async def invoke(self, route: ResolvedRoute, args: Optional[list[Any]] = None) -> InvocationOutcome:
        """
        Call the operation, awaiting the result if the handler is async.

        Plain (non-async) methods run in the threadpool so a blocking handler
        never stalls the event loop or sibling queries.

        Args:
            route: Resolved route with instance and metadata
            args: Positional arguments

        Returns:
            InvocationResult or InvocationError
        """
        method = self._lookup(route)
        if isinstance(method, InvocationError):
            return method

        try:
            if inspect.iscoroutinefunction(method):
                result = await method(*(args or []))
            else:
                result = await run_in_threadpool(method, *(args or []))
                if inspect.isawaitable(result):
                    result = await result
        except Exception as e:
            return self._normalize_error(e, route)

        return InvocationResult(result=result)

    def invoke_sync(self, route: ResolvedRoute, args: Optional[list[Any]] = None) -> InvocationOutcome:
        """Call a non-async operation on the calling thread; same error normalization as invoke()."""
        method = self._lookup(route)
        if isinstance(method, InvocationError):
            return method

        try:
            result = method(*(args or []))
        except Exception as e:
            return self._normalize_error(e, route)

        return InvocationResult(result=result)

    def can_invoke(self, route: ResolvedRoute) -> bool:
        if route.instance is None:
            return False
        return callable(getattr(route.instance, route.metadata.method_name, None))

    def method_info(self, route: ResolvedRoute) -> Optional[dict[str, Any]]:
        """Debug info about the target method, None without a receiver."""
        if route.instance is None:
            return None

        method = getattr(route.instance, route.metadata.method_name, None)
        return {
            "exists": method is not None,
            "is_callable": callable(method),
            "type": type(method).__name__,
            "name": route.metadata.method_name,
        }

    def _lookup(self, route: ResolvedRoute) -> Any:
        """Bound method, or an InvocationError explaining why there is none."""
        metadata = route.metadata

        if route.instance is None:
            return InvocationError(message=f"Instance of {metadata.class_name} is None")

        method = getattr(route.instance, metadata.method_name, None)
        if method is None:
            return InvocationError(
                message=f"Method '{metadata.method_name}' does not exist on "
                f"{metadata.handler_type} {metadata.class_name}"
            )

        if not callable(method):
            return InvocationError(
                message=f"'{metadata.method_name}' on {metadata.handler_type} {metadata.class_name} "
                f"is not callable (got {type(method).__name__})"
            )

        return method

    def _normalize_error(self, error: Exception, route: ResolvedRoute) -> InvocationError:
        metadata = route.metadata

        if isinstance(error, ComposeError):
            return InvocationError(message=error.message, status_code=error.status_code, original_error=error)

        if isinstance(error, HTTPException):
            return InvocationError(
                message=str(error.detail),
                status_code=error.status_code,
                original_error=error,
            )

        message = str(error) or type(error).__name__
        status_code = getattr(error, "status_code", None)
        if not isinstance(status_code, int) or isinstance(status_code, bool):
            status_code = INTERNAL_SERVER_ERROR
            logger.error(f"{metadata.qualified_name}() raised {type(error).__name__}", exc_info=error)

        return InvocationError(
            message=f"{metadata.handler_type} {metadata.qualified_name}() failed: {message}",
            status_code=status_code,
            original_error=error,
        )
