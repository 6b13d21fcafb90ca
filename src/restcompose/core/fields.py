"""
Field selection - projects a nested result down to dotted field paths.

Input:  {"id": 1, "name": "X", "profile": {"bio": "...", "avatar": "..."}}
Fields: ["id", "profile.bio"]
Output: {"id": 1, "profile": {"bio": "..."}}

The "@fields" directive in a request body carries the paths; it is parsed and
validated here and stripped before the body reaches the operation.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel

from .errors import ValidationError

FIELDS_KEY = "@fields"
DEFAULT_MAX_DEPTH = 10

# Scalars that look like objects but are never projected into
_DATE_TYPES = (datetime, date, time)


class FieldSelector:
    """
    Recursive projection over dicts and lists.

    Usage:
        selector = FieldSelector(["id", "posts.title"], max_depth=10)
        projected = selector.select(user)

        # or, with the empty-list shortcut:
        FieldSelector.select_fields(user, ["id"])
    """

    def __init__(self, fields: list[str], max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth
        self.field_map = self._build_field_map(fields)

    @staticmethod
    def _build_field_map(fields: list[str]) -> dict[str, list[str]]:
        """Group paths by first segment: root -> remaining sub-paths."""
        field_map: dict[str, list[str]] = {}
        for path in fields:
            root, _, nested = path.partition(".")
            sub_paths = field_map.setdefault(root, [])
            if nested and nested not in sub_paths:
                sub_paths.append(nested)
        return field_map

    def select(self, data: Any, depth: int = 0) -> Any:
        """Project data; depth only grows when descending into a nested selection."""
        if depth > self.max_depth:
            return data

        if data is None:
            return data

        if isinstance(data, list):
            return [self.select(item, depth) for item in data]
        if isinstance(data, tuple):
            return tuple(self.select(item, depth) for item in data)

        mapping = _as_mapping(data)
        if mapping is None:
            return data

        result: dict[str, Any] = {}
        for key, value in mapping.items():
            sub_paths = self.field_map.get(key)
            if sub_paths is None:
                continue

            if not sub_paths or not _is_composite(value):
                result[key] = value
            else:
                nested = FieldSelector(sub_paths, max_depth=self.max_depth)
                result[key] = nested.select(value, depth + 1)

        return result

    @classmethod
    def select_fields(
        cls,
        data: Any,
        fields: Optional[list[str]],
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> Any:
        """Project data; an empty or missing field list returns data unchanged."""
        if not fields:
            return data
        return cls(fields, max_depth=max_depth).select(data)


def select_fields(data: Any, fields: Optional[list[str]], max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """Functional shortcut for FieldSelector.select_fields."""
    return FieldSelector.select_fields(data, fields, max_depth=max_depth)


def _as_mapping(value: Any) -> Optional[Mapping]:
    """Return a key/value view of composite values, None for scalars."""
    if isinstance(value, _DATE_TYPES):
        return None
    if isinstance(value, Mapping):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return None


def _is_composite(value: Any) -> bool:
    if value is None or isinstance(value, (str, bytes)):
        return False
    return isinstance(value, (list, tuple)) or _as_mapping(value) is not None


# =============================================================================
# "@fields" directive
# =============================================================================


def parse_fields_directive(value: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> list[str]:
    """
    Validate an "@fields" directive.

    Args:
        value: Raw directive value from the request body
        max_depth: Maximum number of dot-separated segments per path

    Returns:
        The validated list of dotted paths (order preserved)

    Raises:
        ValidationError: If the directive is not a list of non-empty strings
            or a path is deeper than max_depth
    """
    if not isinstance(value, list):
        raise ValidationError(f"{FIELDS_KEY} must be an array of strings")

    fields: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise ValidationError(f"{FIELDS_KEY}[{index}] must be a string, got {type(item).__name__}")
        if not item:
            raise ValidationError(f"{FIELDS_KEY}[{index}] cannot be an empty string")
        if len(item.split(".")) > max_depth:
            raise ValidationError(f'Field "{item}" exceeds maximum depth of {max_depth}')
        fields.append(item)

    return fields


def extract_fields_directive(
    body: Optional[Mapping],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> tuple[Optional[list[str]], dict[str, Any]]:
    """
    Split a body into (fields, clean_body).

    fields is None when the directive is absent or empty; clean_body never
    contains the directive key.
    """
    if not body:
        return None, {}

    clean_body = {key: value for key, value in body.items() if key != FIELDS_KEY}
    if FIELDS_KEY not in body:
        return None, clean_body

    fields = parse_fields_directive(body[FIELDS_KEY], max_depth=max_depth)
    return (fields or None), clean_body
