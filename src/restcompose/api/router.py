"""
FastAPI router for the compose endpoint.

Endpoints:
- POST /compose - Executes a batch of aliased sub-queries
- GET  /__routes - Lists registered routes

Request:
    {"queries": {"me": {"path": "/users/me", "body": {"@fields": ["id"]}}}}

Response (200, even when some aliases failed):
    {"me": {"id": 1}}

Envelope errors (400 / 413) and the batch cost limit (408) fail the whole call
with {"error": ..., "statusCode": ...}.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..core.errors import ComposeError, ValidationError
from ..core.registry import RouteRegistry
from ..core.validator import RequestValidator
from ..runtime.context import RequestContextService, create_context, generate_request_id
from ..runtime.executor import ComposeExecutor

logger = logging.getLogger(__name__)


def error_response(error: ComposeError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_compose_router(
    executor: ComposeExecutor,
    validator: Optional[RequestValidator] = None,
    *,
    path: str = "/compose",
    contexts: Optional[RequestContextService] = None,
) -> APIRouter:
    """
    Create a router exposing the compose endpoint.

    Args:
        executor: Configured ComposeExecutor
        validator: Envelope validator (default: built from executor.config)
        path: URL path of the endpoint
        contexts: Context service shared with the middleware

    Returns:
        Configured FastAPI router
    """
    config = executor.config
    validator = validator or RequestValidator(
        max_batch_size=config.max_batch_size,
        max_payload_size=config.max_payload_size,
    )
    contexts = contexts or executor.contexts
    router = APIRouter()

    @router.post(path)
    async def compose(request: Request) -> Any:
        try:
            raw = await request.json()
        except ValueError:
            return error_response(ValidationError("Request body must be valid JSON"))

        async def run() -> dict[str, Any]:
            queries = validator.validate(raw)
            return await executor.execute(queries)

        try:
            if contexts.has_context():
                results = await run()
            else:
                context = create_context(
                    request_id=request.headers.get("x-request-id") or generate_request_id("compose"),
                    method="POST",
                    path=path,
                )
                results = await contexts.run_async(context, run)
        except ComposeError as e:
            logger.warning(f"Compose request rejected: {e.message}")
            return error_response(e)

        return JSONResponse(content=jsonable_encoder(results))

    @router.get("/__routes")
    async def list_routes() -> list[dict[str, Any]]:
        return describe_routes(executor.registry)

    return router


def describe_routes(registry: RouteRegistry) -> list[dict[str, Any]]:
    """JSON-friendly view of the registry."""
    return [
        {
            "path": entry.path,
            "httpMethod": entry.handler.http_method,
            "handler": entry.handler.qualified_name,
            "type": entry.handler.handler_type,
        }
        for entry in registry.routes()
    ]
