"""
Pydantic models for the compose request envelope.

Request:
{
    "queries": {
        "me":    {"path": "/users/me", "body": {"@fields": ["id", "name"]}},
        "posts": {"path": "/users/:id/posts", "params": {"id": "42"}}
    }
}

Response:
{
    "me":    {"id": "42", "name": "X"},
    "posts": {"error": "Path \"/users/:id/posts\" not found in registry", "statusCode": 404}
}
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ComposeQuery(BaseModel):
    """One aliased sub-query."""
    model_config = ConfigDict(extra="forbid")

    path: str
    body: Optional[dict[str, Any]] = None  # may carry "@fields"
    params: Optional[dict[str, Any]] = None  # path parameters
    query: Optional[dict[str, Any]] = None  # query-string parameters


class ComposeRequest(BaseModel):
    """Batch envelope: alias -> sub-query."""
    model_config = ConfigDict(extra="forbid")

    queries: dict[str, ComposeQuery] = Field(default_factory=dict)


class ErrorRecord(BaseModel):
    """Normalized per-alias failure."""
    model_config = ConfigDict(populate_by_name=True)

    error: str
    status_code: int = Field(alias="statusCode")


# alias -> result value or ErrorRecord dict
ComposeResponse = Dict[str, Any]
