"""
Cache fingerprint for sub-queries.

Format: path[:bodyHash][:fieldHash]

- bodyHash: first 8 hex chars of SHA-256 over the canonical JSON of the body
  (keys sorted recursively, "@fields" and None values dropped) merged with the
  path/query params
- fieldHash: first 8 hex chars of SHA-256 over the sorted field list

Identical effective arguments give identical keys whether a value arrived as a
path segment, a query parameter or a body key.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any, Optional

from .fields import FIELDS_KEY

HASH_LENGTH = 8


def normalize_body(body: Any) -> Any:
    """Recursively sort dict keys (also inside lists), dropping the field directive and None values."""
    if isinstance(body, (list, tuple)):
        return [normalize_body(item) for item in body]
    if not isinstance(body, Mapping):
        return body

    normalized: dict[str, Any] = {}
    for key in sorted(body.keys(), key=str):
        if key == FIELDS_KEY:
            continue
        value = body[key]
        if value is None:
            continue
        normalized[key] = normalize_body(value)
    return normalized


def _short_hash(value: Any) -> str:
    payload = json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def hash_fields(fields: Optional[list[str]]) -> str:
    """Order-insensitive hash of a field list; '' for no fields."""
    if not fields:
        return ""
    return _short_hash(sorted(fields))


def generate_cache_key(
    path: str,
    body: Any = None,
    fields: Optional[list[str]] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Build the fingerprint of a sub-query.

    Args:
        path: Sub-query path as sent by the caller
        body: Request body (normalized, "@fields" excluded)
        fields: Field selection paths
        params: Merged path + query parameters

    Returns:
        Cache key string
    """
    normalized = normalize_body(body)
    if params:
        merged = dict(normalized) if isinstance(normalized, Mapping) else {}
        merged.update(params)
        normalized = normalize_body(merged)

    parts = [path]

    if normalized:
        parts.append(_short_hash(normalized))

    field_hash = hash_fields(fields)
    if field_hash:
        parts.append(field_hash)

    return ":".join(parts)
