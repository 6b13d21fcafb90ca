"""
Compose envelope validator.

Checks the raw (already JSON-decoded) request before any sub-query runs:
shape, unknown keys, payload size and batch size.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from .errors import BatchSizeError, PayloadTooLargeError, ValidationError
from .query_types import ComposeQuery

ALLOWED_REQUEST_KEYS = ("queries",)
ALLOWED_QUERY_KEYS = ("path", "body", "params", "query")
OBJECT_QUERY_KEYS = ("body", "params", "query")


class RequestValidator:
    """
    Validates compose envelopes against configured limits.

    Usage:
        validator = RequestValidator(max_batch_size=50, max_payload_size=1024 * 1024)
        queries = validator.validate(raw_request)  # dict[str, ComposeQuery]
    """

    def __init__(self, max_batch_size: int = 50, max_payload_size: Optional[int] = None):
        """
        Initialize validator.

        Args:
            max_batch_size: Maximum number of queries per request
            max_payload_size: Maximum UTF-8 JSON size in bytes (None disables)
        """
        self.max_batch_size = max_batch_size
        self.max_payload_size = max_payload_size

    def validate(self, request: Any) -> dict[str, ComposeQuery]:
        """
        Validate the envelope and return typed queries.

        Raises:
            ValidationError: Bad shape or unknown properties
            PayloadTooLargeError: Payload above max_payload_size
            BatchSizeError: Zero queries or more than max_batch_size
        """
        self._validate_request_shape(request)

        if self.max_payload_size:
            size = payload_size(request)
            if size > self.max_payload_size:
                raise PayloadTooLargeError(
                    f"Request payload size {size} bytes exceeds maximum of {self.max_payload_size} bytes"
                )

        queries = self._validate_queries(request["queries"])

        count = len(queries)
        if count > self.max_batch_size:
            raise BatchSizeError(
                f"Query count exceeds maximum of {self.max_batch_size}. Received {count} queries."
            )
        if count == 0:
            raise BatchSizeError("At least one query is required")

        return queries

    def _validate_request_shape(self, request: Any) -> None:
        if not isinstance(request, dict):
            raise ValidationError("Request must be an object with a 'queries' property")

        if "queries" not in request:
            raise ValidationError("Request must have a 'queries' property")

        if not isinstance(request["queries"], dict):
            raise ValidationError(
                "Request 'queries' must be an object mapping aliases to query definitions"
            )

        unknown = [key for key in request if key not in ALLOWED_REQUEST_KEYS]
        if unknown:
            raise ValidationError(
                f"Request contains unknown properties: {', '.join(unknown)}. Only 'queries' is allowed."
            )

    def _validate_queries(self, raw_queries: dict[str, Any]) -> dict[str, ComposeQuery]:
        errors: list[str] = []
        queries: dict[str, ComposeQuery] = {}

        for alias, query in raw_queries.items():
            if not isinstance(alias, str) or not alias:
                errors.append("Query alias must be a non-empty string")
                continue

            query_errors = self._validate_query_shape(alias, query)
            if query_errors:
                errors.extend(query_errors)
                continue

            queries[alias] = ComposeQuery(**query)

        if errors:
            raise ValidationError(errors)

        return queries

    @staticmethod
    def _validate_query_shape(alias: str, query: Any) -> list[str]:
        if not isinstance(query, dict):
            return [f'Query "{alias}" must be an object']

        if "path" not in query:
            return [f"Query \"{alias}\" must have a 'path' property"]

        errors: list[str] = []
        if not isinstance(query["path"], str) or not query["path"]:
            errors.append(f"Query \"{alias}\" 'path' must be a non-empty string")

        unknown = [key for key in query if key not in ALLOWED_QUERY_KEYS]
        if unknown:
            errors.append(
                f'Query "{alias}" contains unknown properties: {", ".join(unknown)}. '
                f'Allowed: {", ".join(ALLOWED_QUERY_KEYS)}'
            )

        for key in OBJECT_QUERY_KEYS:
            if query.get(key) is not None and not isinstance(query[key], dict):
                errors.append(f"Query \"{alias}\" '{key}' must be an object")

        return errors


def payload_size(request: Any) -> int:
    """UTF-8 byte size of the compact JSON encoding."""
    encoded = json.dumps(request, separators=(",", ":"), ensure_ascii=False, default=str)
    return len(encoded.encode("utf-8"))
