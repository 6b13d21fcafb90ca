"""
Core module - definitions, registry, field selection and validation.
"""

from __future__ import annotations

from .cache_key import generate_cache_key, hash_fields, normalize_body
from .defs import (
    HTTP_METHODS,
    OperationDescriptor,
    ResolvedRoute,
    RouteEntry,
    RouteRegistration,
    adapt_routes,
    infer_handler_type,
)
from .errors import (
    BatchSizeError,
    ComposeError,
    ConfigError,
    CostLimitError,
    HTTPError,
    NotFoundError,
    PayloadTooLargeError,
    QueryTimeoutError,
    RegistryError,
    RouteLimitError,
    ValidationError,
)
from .fields import (
    FIELDS_KEY,
    FieldSelector,
    extract_fields_directive,
    parse_fields_directive,
    select_fields,
)
from .query_types import ComposeQuery, ComposeRequest, ComposeResponse, ErrorRecord
from .registry import RouteRegistry
from .validator import RequestValidator, payload_size

__all__ = [
    # Definitions
    "HTTP_METHODS",
    "OperationDescriptor",
    "RouteEntry",
    "ResolvedRoute",
    "RouteRegistration",
    "adapt_routes",
    "infer_handler_type",
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
    "ComposeResponse",
    "ErrorRecord",
    "RequestValidator",
    "payload_size",
    # Registry
    "RouteRegistry",
    # Fields
    "FIELDS_KEY",
    "FieldSelector",
    "select_fields",
    "parse_fields_directive",
    "extract_fields_directive",
    # Cache keys
    "generate_cache_key",
    "hash_fields",
    "normalize_body",
]
