"""
Compose gateway - wires registry, executor and HTTP surface together.

Usage:
    from restcompose import ComposeGateway, RouteRegistration

    gateway = ComposeGateway(
        routes=[
            RouteRegistration("/users/:id", UserService, "find_by_id", "GET"),
            RouteRegistration("/users/:id/posts", PostController, "list_for_user", "GET"),
        ],
        instances={UserService: UserService(), PostController: PostController()},
    )

    app = gateway.app                      # FastAPI app with POST /compose
    results = await gateway.compose({"queries": {...}})   # in-process
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Union

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.fields import FieldSelectionRoute
from .api.middleware import RequestContextMiddleware
from .api.router import create_compose_router
from .config import OrchestratorConfig
from .core.defs import RouteEntry, RouteRegistration, adapt_routes
from .core.registry import RouteRegistry
from .core.validator import RequestValidator
from .runtime.cache import CacheAdapter
from .runtime.context import RequestContextService
from .runtime.executor import ComposeExecutor
from .runtime.invoker import MethodInvoker
from .runtime.resolver import InstanceProvider, InstanceRegistry

logger = logging.getLogger(__name__)


class ComposeGateway:
    """
    One-stop setup for a compose deployment.

    Features:
    - Validates and seals the route registry at construction (fails fast)
    - In-process compose() entry point with envelope validation
    - FastAPI app with POST /compose, GET /__routes and GET /health
    """

    def __init__(
        self,
        routes: list[Union[RouteRegistration, RouteEntry]],
        instances: Union[InstanceProvider, dict[type, Any]],
        *,
        config: Optional[OrchestratorConfig] = None,
        cache_adapter: Optional[CacheAdapter] = None,
        title: str = "Compose Gateway",
        cors_origins: Optional[list[str]] = None,
        compose_path: str = "/compose",
    ):
        """
        Initialize gateway.

        Args:
            routes: Public registrations or ready RouteEntry objects
            instances: InstanceProvider or a class -> instance dict
            config: Orchestrator limits (default OrchestratorConfig())
            cache_adapter: Optional external cache (e.g. RedisCacheAdapter)
            title: FastAPI app title
            cors_origins: CORS allowed origins (default: localhost:3000)
            compose_path: URL path of the compose endpoint

        Raises:
            RegistryError: If any route is invalid, duplicated or unresolvable
        """
        self.config = config or OrchestratorConfig()
        self.title = title
        self.cors_origins = cors_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
        self.compose_path = compose_path

        if isinstance(instances, dict):
            instances = InstanceRegistry(instances)
        self.instances = instances

        self.registry = RouteRegistry(instances)
        self.registry.register(self._to_entries(routes))

        self.contexts = RequestContextService()
        self.executor = ComposeExecutor(
            self.registry,
            invoker=MethodInvoker(),
            config=self.config,
            cache_adapter=cache_adapter,
            contexts=self.contexts,
        )
        self.validator = RequestValidator(
            max_batch_size=self.config.max_batch_size,
            max_payload_size=self.config.max_payload_size,
        )

        self._app: Optional[FastAPI] = None

    @staticmethod
    def _to_entries(routes: list[Union[RouteRegistration, RouteEntry]]) -> list[RouteEntry]:
        entries: list[RouteEntry] = []
        for route in routes:
            if isinstance(route, RouteRegistration):
                entries.extend(adapt_routes([route]))
            else:
                entries.append(route)
        return entries

    async def compose(self, request: dict[str, Any]) -> dict[str, Any]:
        """
        Validate a raw envelope and execute it.

        Raises:
            ValidationError / BatchSizeError / PayloadTooLargeError: Bad envelope
            CostLimitError: Batch exceeded max_cost_ms
        """
        queries = self.validator.validate(request)
        return await self.executor.execute(queries)

    def fields_router(self, **kwargs: Any) -> APIRouter:
        """
        Router for ordinary endpoints that honour the "@fields" body directive.

        Usage:
            router = gateway.fields_router(prefix="/api")

            @router.post("/users/{user_id}")
            async def get_user(user_id: str, payload: dict): ...

            gateway.app.include_router(router)
        """
        route_class = FieldSelectionRoute.with_max_depth(self.config.max_field_depth)
        return APIRouter(route_class=route_class, **kwargs)

    @property
    def app(self) -> FastAPI:
        """FastAPI application (created on first access)."""
        if self._app is None:
            self._app = self._create_app()
            self._app.state.gateway = self
        return self._app

    def _create_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            logger.info(f"{self.title} serving {len(self.registry)} routes at {self.compose_path}")
            yield

        app = FastAPI(title=self.title, lifespan=lifespan)

        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        app.add_middleware(RequestContextMiddleware, contexts=self.contexts)

        app.include_router(
            create_compose_router(
                self.executor,
                self.validator,
                path=self.compose_path,
                contexts=self.contexts,
            )
        )

        @app.get("/health")
        async def health_check():
            return {"status": "ok", "routes": len(self.registry)}

        return app
