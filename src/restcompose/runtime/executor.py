"""
Compose executor - runs a batch of aliased sub-queries concurrently.

Per sub-query:
1. Check the batch execution budget
2. Enforce the per-route call limit
3. Race the sub-query against the per-query timeout
4. Resolve the path (GET, POST, PUT, PATCH, DELETE, first match wins)
5. Extract "@fields" into the sub-query's own RequestContext
6. Serve from the request cache if an identical sub-query already ran
7. Invoke the operation and project the result
8. Store the projected result in the cache

One alias failing never affects its siblings; its error is embedded in the
response. Only the total cost check fails the whole batch.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import OrchestratorConfig
from ..core.defs import HTTP_METHODS, ResolvedRoute
from ..core.errors import (
    ComposeError,
    CostLimitError,
    HTTPError,
    NotFoundError,
    QueryTimeoutError,
    RouteLimitError,
)
from ..core.fields import FIELDS_KEY, extract_fields_directive, select_fields
from ..core.query_types import ComposeQuery
from ..core.registry import RouteRegistry
from .cache import MISSING, CacheAdapter, RequestCache
from .context import (
    RequestContext,
    RequestContextService,
    child_context,
    create_context,
    generate_request_id,
)
from .invoker import MethodInvoker

logger = logging.getLogger(__name__)


@dataclass
class BatchState:
    """State shared by the sub-queries of one batch, and only of that batch."""
    start_time: float = field(default_factory=time.monotonic)
    route_counts: dict[str, int] = field(default_factory=dict)
    cache: Optional[RequestCache] = None

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000


class ComposeExecutor:
    """
    Executes compose batches against a sealed RouteRegistry.

    Usage:
        executor = ComposeExecutor(registry, config=OrchestratorConfig())
        results = await executor.execute({
            "u": ComposeQuery(path="/users/:id", params={"id": "42"}),
        })
        # {"u": {...}} or {"u": {"error": "...", "statusCode": 404}}
    """

    def __init__(
        self,
        registry: RouteRegistry,
        invoker: Optional[MethodInvoker] = None,
        config: Optional[OrchestratorConfig] = None,
        cache_adapter: Optional[CacheAdapter] = None,
        contexts: Optional[RequestContextService] = None,
    ):
        """
        Initialize executor.

        Args:
            registry: Sealed route registry
            invoker: Method invoker (default MethodInvoker())
            config: Limits (default OrchestratorConfig())
            cache_adapter: Optional external cache behind the request cache
            contexts: Context service (default RequestContextService())
        """
        self.registry = registry
        self.invoker = invoker or MethodInvoker()
        self.config = config or OrchestratorConfig()
        self.cache_adapter = cache_adapter
        self.contexts = contexts or RequestContextService()

    async def execute(self, queries: Mapping[str, ComposeQuery | dict[str, Any]]) -> dict[str, Any]:
        """
        Execute all queries concurrently.

        Runs inside the active RequestContext if there is one, otherwise in a
        fresh batch context that is torn down afterwards.

        Args:
            queries: alias -> ComposeQuery (or plain dict of the same shape)

        Returns:
            alias -> result, or alias -> {"error", "statusCode"}

        Raises:
            CostLimitError: Total execution time exceeded max_cost_ms
        """
        typed = {
            alias: query if isinstance(query, ComposeQuery) else ComposeQuery.model_validate(query)
            for alias, query in queries.items()
        }

        parent = self.contexts.current()
        if parent is not None:
            return await self._execute_batch(typed, parent)

        batch_context = create_context(
            request_id=generate_request_id("compose"),
            method="POST",
            path="/compose",
        )
        return await self.contexts.run_async(batch_context, lambda: self._execute_batch(typed, batch_context))

    async def _execute_batch(self, queries: dict[str, ComposeQuery], parent: RequestContext) -> dict[str, Any]:
        state = BatchState()
        if self.config.enable_caching:
            state.cache = RequestCache(parent.cache, adapter=self.cache_adapter)

        aliases = list(queries)
        outcomes = await asyncio.gather(
            *(self._run_query(alias, queries[alias], state, parent) for alias in aliases),
            return_exceptions=True,
        )

        results: dict[str, Any] = {}
        for alias, outcome in zip(aliases, outcomes):
            if isinstance(outcome, BaseException):
                results[alias] = self._normalize_error(outcome, alias)
            else:
                results[alias] = outcome

        total_ms = state.elapsed_ms()
        logger.debug(f"Compose batch of {len(aliases)} queries finished in {total_ms:.1f}ms")

        max_cost = self.config.max_cost_ms
        if max_cost and total_ms > max_cost:
            raise CostLimitError(
                f"Cost limit exceeded: total execution time {total_ms:.0f}ms exceeds maximum of {max_cost}ms"
            )

        return results

    async def _run_query(self, alias: str, query: ComposeQuery, state: BatchState, parent: RequestContext) -> Any:
        """Run one alias; never raises, failures become error records."""
        try:
            self._check_budget(alias, state, "before executing")

            route_key = query.path
            limit = self.config.per_route_call_limit
            count = state.route_counts.get(route_key, 0) + 1
            if count > limit:
                logger.warning(f"Per-route call limit hit for {route_key} (query {alias})")
                raise RouteLimitError(
                    f'Per-route call limit exceeded: route "{route_key}" has been called {count - 1} times, '
                    f"exceeding the limit of {limit} calls per compose request"
                )
            state.route_counts[route_key] = count

            started = time.monotonic()
            result = await self._execute_with_timeout(alias, query, state, parent)
            logger.debug(f'Query "{alias}" completed in {(time.monotonic() - started) * 1000:.1f}ms')
            return result

        except Exception as e:
            return self._normalize_error(e, alias)

    async def _execute_with_timeout(
        self,
        alias: str,
        query: ComposeQuery,
        state: BatchState,
        parent: RequestContext,
    ) -> Any:
        timeout_ms = self.config.query_timeout_ms

        # The outcome is reported at the deadline even if the invocation cannot
        # stop right away (a sync handler blocking a worker thread).
        task = asyncio.ensure_future(self._execute_query(alias, query, state, parent))
        task.add_done_callback(_discard_result)

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        except asyncio.TimeoutError:
            if self.config.cancel_on_timeout:
                task.cancel()
            logger.warning(f'Query "{alias}" timed out after {timeout_ms}ms')
            raise QueryTimeoutError(f'Query "{alias}" timed out after {timeout_ms}ms') from None

    async def _execute_query(
        self,
        alias: str,
        query: ComposeQuery,
        state: BatchState,
        parent: RequestContext,
    ) -> Any:
        resolved = self.resolve_path(query.path)
        if resolved is None:
            raise NotFoundError(f'Path "{query.path}" not found in registry')

        context = child_context(
            parent,
            request_id=f"query-{alias}-{int(time.time() * 1000)}",
            method=resolved.http_method,
            path=query.path,
            metadata={"alias": alias, "batch_start_time": state.start_time},
        )
        return await self.contexts.run_async(
            context, lambda: self._execute_in_context(alias, query, resolved, state)
        )

    async def _execute_in_context(
        self,
        alias: str,
        query: ComposeQuery,
        route: ResolvedRoute,
        state: BatchState,
    ) -> Any:
        self._check_budget(alias, state, "during")

        max_depth = self.config.max_field_depth
        fields, body = extract_fields_directive(query.body, max_depth=max_depth)
        if fields:
            self.contexts.set_fields(fields, max_depth)

        params = {**route.params, **(query.params or {})}

        cache_key = None
        if state.cache is not None:
            all_params = {**params, **(query.query or {})}
            cache_key = state.cache.generate_key(query.path, body, fields, all_params or None)
            cached = await state.cache.get(cache_key)
            if cached is not MISSING:
                return copy.deepcopy(cached)

        args = self.prepare_args(params, query.query, body)
        logger.debug(f'Query "{alias}" -> {route.http_method} {route.metadata.qualified_name}')

        outcome = await self.invoker.invoke(route, args)
        if not outcome.success:
            raise HTTPError(outcome.message, outcome.status_code)

        result = outcome.result
        if fields:
            result = select_fields(result, fields, max_depth=max_depth)

        if cache_key is not None:
            # aliases sharing a fingerprint must not share mutable results
            await state.cache.set(cache_key, copy.deepcopy(result))

        return result

    def resolve_path(self, path: str) -> Optional[ResolvedRoute]:
        """Try each verb in order; the first match wins."""
        for http_method in HTTP_METHODS:
            resolved = self.registry.resolve(path, http_method)
            if resolved is not None:
                return resolved
        return None

    @staticmethod
    def prepare_args(
        path_params: Mapping[str, Any],
        query: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> list[Any]:
        """
        Build positional arguments for the operation.

        - non-empty body or params: [params, query, body], None positions dropped
        - only query: [query]
        - nothing: []
        """
        params = dict(path_params)
        clean_body = {key: value for key, value in (body or {}).items() if key != FIELDS_KEY}

        if clean_body or params:
            return [arg for arg in (params, query, clean_body) if arg is not None]

        if query:
            return [{**params, **query}]

        return []

    def _check_budget(self, alias: str, state: BatchState, when: str) -> None:
        budget = self.config.max_execution_time_ms
        if state.elapsed_ms() >= budget:
            logger.warning(f'Execution budget of {budget}ms exhausted {when} query "{alias}"')
            raise QueryTimeoutError(
                f'Maximum execution time of {budget}ms exceeded {when} query "{alias}"'
            )

    @staticmethod
    def _normalize_error(error: BaseException, alias: str) -> dict[str, Any]:
        if isinstance(error, ComposeError):
            return error.to_dict()

        status_code = getattr(error, "status_code", None)
        if not isinstance(status_code, int):
            status_code = 500
        logger.error(f'Query "{alias}" failed unexpectedly: {error!r}')
        return {
            "error": str(error) or f'Query "{alias}" execution failed',
            "statusCode": status_code,
        }


def _discard_result(task: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned invocation so it is not reported as lost."""
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Abandoned query finished with error: {task.exception()!r}")
