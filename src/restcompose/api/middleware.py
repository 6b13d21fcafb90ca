"""
ASGI middleware that opens a RequestContext for every HTTP request.

The context carries the request id (x-request-id header or generated), the
method and the path, and is torn down when the response is finished.
"""

from __future__ import annotations

from typing import Optional

from starlette.types import ASGIApp, Receive, Scope, Send

from ..runtime.context import RequestContextService, create_context, generate_request_id

REQUEST_ID_HEADER = b"x-request-id"


class RequestContextMiddleware:
    """
    Usage:
        app = FastAPI()
        app.add_middleware(RequestContextMiddleware)
    """

    def __init__(self, app: ASGIApp, contexts: Optional[RequestContextService] = None):
        self.app = app
        self.contexts = contexts or RequestContextService()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        request_id = headers.get(REQUEST_ID_HEADER, b"").decode("latin-1") or generate_request_id()

        client = scope.get("client")
        context = create_context(
            request_id=request_id,
            method=scope.get("method"),
            path=scope.get("path"),
            metadata={
                "ip": client[0] if client else None,
                "user_agent": headers.get(b"user-agent", b"").decode("latin-1") or None,
            },
        )

        await self.contexts.run_async(context, lambda: self.app(scope, receive, send))
