"""
"@fields" support for ordinary FastAPI endpoints.

Routes built with FieldSelectionRoute accept the same field directive as
compose sub-queries:

1. "@fields" is read from the JSON body, validated and removed before the
   endpoint parses the body
2. The selection is stored in the active RequestContext (a context is opened
   for the request if no middleware did so)
3. A successful JSON response is projected with the selection found in the
   context when the endpoint returns

Usage:
    from fastapi import APIRouter
    from restcompose.api import FieldSelectionRoute

    router = APIRouter(route_class=FieldSelectionRoute)

    @router.post("/users/{user_id}")
    async def get_user(user_id: str, payload: dict):
        return await users.find(user_id)   # projected by "@fields"

    # Custom depth limit
    router = APIRouter(route_class=FieldSelectionRoute.with_max_depth(5))
"""

from __future__ import annotations

import json
from typing import Any, Callable, Coroutine, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from ..core.errors import ValidationError
from ..core.fields import DEFAULT_MAX_DEPTH, FIELDS_KEY, extract_fields_directive, select_fields
from ..runtime.context import RequestContextService, create_context, generate_request_id
from .router import error_response


class FieldsRequest(Request):
    """Request whose body was rewritten without the field directive."""

    def __init__(self, request: Request, body: bytes):
        super().__init__(request.scope, request.receive)
        self._body = body


class FieldSelectionRoute(APIRoute):
    """APIRoute that strips, stores and applies the "@fields" directive."""

    max_depth: int = DEFAULT_MAX_DEPTH

    @classmethod
    def with_max_depth(cls, max_depth: int) -> type["FieldSelectionRoute"]:
        """Route class bound to a different depth limit."""
        return type(cls.__name__, (cls,), {"max_depth": max_depth})

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()
        max_depth = self.max_depth
        contexts = RequestContextService()

        async def handle(request: Request, fields: Optional[list[str]]) -> Response:
            if fields:
                contexts.set_fields(fields, max_depth)

            response = await original_handler(request)

            selection = contexts.get_fields()
            if selection is None or not selection.fields:
                return response
            return _project_response(response, selection.fields, selection.max_depth)

        async def route_handler(request: Request) -> Response:
            try:
                request, fields = await _strip_fields_directive(request, max_depth)
            except ValidationError as e:
                return error_response(e)

            if contexts.has_context():
                return await handle(request, fields)

            context = create_context(
                request_id=request.headers.get("x-request-id") or generate_request_id(),
                method=request.method,
                path=request.url.path,
            )
            return await contexts.run_async(context, lambda: handle(request, fields))

        return route_handler


async def _strip_fields_directive(request: Request, max_depth: int) -> tuple[Request, Optional[list[str]]]:
    """Return (request without "@fields", parsed fields or None)."""
    raw = await request.body()
    if not raw:
        return request, None

    try:
        body = json.loads(raw)
    except ValueError:
        # Not JSON: FastAPI reports it while parsing the body
        return request, None

    if not isinstance(body, dict) or FIELDS_KEY not in body:
        return request, None

    fields, clean_body = extract_fields_directive(body, max_depth=max_depth)
    return FieldsRequest(request, json.dumps(clean_body).encode("utf-8")), fields


def _project_response(response: Response, fields: list[str], max_depth: int) -> Response:
    if not isinstance(response, JSONResponse) or not 200 <= response.status_code < 300:
        return response

    data = select_fields(json.loads(response.body), fields, max_depth=max_depth)
    headers = {
        key: value
        for key, value in response.headers.items()
        if key.lower() not in ("content-length", "content-type")
    }
    return JSONResponse(
        content=data,
        status_code=response.status_code,
        headers=headers,
        background=response.background,
    )
