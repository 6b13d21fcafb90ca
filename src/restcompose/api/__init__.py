"""
API module - FastAPI endpoints and middleware.
"""

from __future__ import annotations

from .fields import FieldSelectionRoute
from .middleware import RequestContextMiddleware
from .router import create_compose_router, describe_routes

__all__ = [
    "create_compose_router",
    "describe_routes",
    "FieldSelectionRoute",
    "RequestContextMiddleware",
]
