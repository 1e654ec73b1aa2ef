"""Agent Router - entry points used by the HTTP layer.

Per request:
    request → TagExtractor → SessionModelCache / ModelResolver → {"model": ...}

and around the upstream call:
    RetryExecutor.execute(call) → result, or the original error re-raised

Resolution never raises: missing or malformed routing metadata always ends in
Router.default. The only error a caller can see is the upstream provider's,
after retries are exhausted.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

from agent_router.core.model_resolver import (
    ModelResolver,
    ResolutionSource,
    RoutingDecision,
)
from agent_router.core.retry_executor import RetryExecutor
from agent_router.core.session_cache import SessionModelCache
from agent_router.core.tag_extractor import (
    DEFAULT_SESSION_ID,
    TagExtractor,
    extract_session_id,
)
from agent_router.project_store import JsonProjectStore
from agent_router.settings import RouterSettings, get_settings

T = TypeVar("T")


class AgentRouter:
    """Wires extractor, resolver, cache and retry executor together."""

    def __init__(
        self,
        store: Any,
        default_model: Optional[str] = None,
        cache: Optional[SessionModelCache] = None,
        retry_executor: Optional[RetryExecutor] = None,
        logger: Optional[logging.Logger] = None,
        store_timeout: Optional[float] = 5.0,
    ):
        self._log = logger or logging.getLogger(__name__)
        self.cache = cache if cache is not None else SessionModelCache(logger=self._log)
        self.extractor = TagExtractor(logger=self._log)
        self.resolver = ModelResolver(
            store,
            default_model=default_model,
            cache=self.cache,
            logger=self._log,
            store_timeout=store_timeout,
        )
        self.retry_executor = retry_executor or RetryExecutor(logger=self._log)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[RouterSettings] = None,
        store: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> "AgentRouter":
        settings = settings or get_settings()
        log = logger or logging.getLogger(__name__)
        return cls(
            store if store is not None else JsonProjectStore(settings.projects_file, logger=log),
            default_model=settings.default_model,
            cache=SessionModelCache(settings.cache.capacity, logger=log),
            retry_executor=RetryExecutor(settings.retry.to_policy(), logger=log),
            logger=log,
            store_timeout=settings.store_timeout_seconds,
        )

    # ------------------------------------------------------------ resolution

    async def resolve_request(self, request: Mapping[str, Any]) -> RoutingDecision:
        """Pick the model for ``request``. Never raises."""
        session_id = DEFAULT_SESSION_ID
        try:
            session_id = extract_session_id(request)
            ids = self.extractor.extract(request)
            decision = await self.resolver.resolve(ids, session_id)
        except Exception as e:
            self._log.error(f"Agent routing failed, using Router.default: {e!r}")
            model, source = self.resolver.default_model()
            return RoutingDecision(model=model, source=source, session_id=session_id)

        if decision.source is not ResolutionSource.DEFAULT:
            self._log.debug(
                f"Routed session={decision.session_id} via {decision.source.value} "
                f"-> {decision.model}"
            )
        return decision

    async def resolve_model(self, request: Mapping[str, Any]) -> Dict[str, str]:
        """``{"model": ...}`` form of resolve_request."""
        return (await self.resolve_request(request)).as_dict()

    # -------------------------------------------------------------- dispatch

    async def dispatch(
        self,
        call: Callable[[], Awaitable[T]],
        context: str = "operation",
    ) -> T:
        """Run an upstream call with retries; re-raise its final error unchanged."""
        return await self.retry_executor.execute(call, context)

    async def forward(self, request: Mapping[str, Any], client: Any) -> Any:
        """Resolve, stamp the model into the body, and send it via ``client``.

        ``client`` needs an async ``send_completion(body)``, e.g.
        ``agent_router.http_utils.UpstreamClient``.
        """
        decision = await self.resolve_request(request)
        body = dict(request.get("body") or {})
        body["model"] = decision.model
        return await self.dispatch(
            lambda: client.send_completion(body),
            f"LLM API request to {decision.model}",
        )

    # --------------------------------------------------------------- metrics

    def get_cache_metrics(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def reset_cache_metrics(self) -> None:
        self.cache.reset_stats()

    def log_cache_metrics(self, label: Optional[str] = None) -> None:
        self.cache.log_stats(label)


_router: Optional[AgentRouter] = None


def get_router() -> AgentRouter:
    """Get the process-wide router built from settings."""
    global _router
    if _router is None:
        _router = AgentRouter.from_settings()
    return _router


def reset_router() -> None:
    global _router
    _router = None
