"""
Custom exceptions for the restcompose system.

Every error carries a human-readable message and a numeric status code so the
orchestrator can embed it in a batch response as ``{"error", "statusCode"}``.
"""

from __future__ import annotations

from typing import Any, Optional


class ComposeError(Exception):
    """Base exception for all restcompose errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Error record as embedded in a compose response."""
        return {"error": self.message, "statusCode": self.status_code}


class ConfigError(ComposeError):
    """Raised when orchestrator configuration is invalid."""
    pass


class RegistryError(ComposeError):
    """
    Raised when route registration or lookup fails.

    Codes:
        ALREADY_INITIALIZED, NOT_INITIALIZED, INVALID_PATH, INVALID_PATH_FORMAT,
        MISSING_HANDLER_CLASS, INVALID_METHOD_NAME, INVALID_HANDLER_TYPE,
        INVALID_HTTP_METHOD, DUPLICATE_ROUTES, HANDLER_VALIDATION_FAILED
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: Optional[str] = None,
        duplicates: Optional[list[str]] = None,
    ):
        self.path = path
        self.code = code
        self.duplicates = duplicates or []
        super().__init__(message, status_code=500)


class ValidationError(ComposeError):
    """Raised when a compose request or a field directive is malformed."""

    status_code = 400

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__("; ".join(errors))


class BatchSizeError(ValidationError):
    """Raised when a batch holds zero queries or more than allowed."""
    pass


class PayloadTooLargeError(ComposeError):
    """Raised when the serialized request exceeds the payload limit."""

    status_code = 413


# =============================================================================
# Per-query outcomes
# =============================================================================


class HTTPError(ComposeError):
    """Error with an explicit HTTP-style status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message, status_code=status_code)


class NotFoundError(HTTPError):
    """Raised when no registered route matches a sub-query path."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class RouteLimitError(HTTPError):
    """Raised when a route is called more times than allowed in one batch."""

    def __init__(self, message: str):
        super().__init__(message, status_code=429)


class QueryTimeoutError(HTTPError):
    """Raised when a sub-query, or the whole batch budget, runs out of time."""

    def __init__(self, message: str):
        super().__init__(message, status_code=408)


class CostLimitError(HTTPError):
    """Raised when a whole batch exceeds its total cost."""

    def __init__(self, message: str):
        super().__init__(message, status_code=408)
