"""Model Resolver - turn routing ids into a concrete ``provider,model``.

Fallback chain, evaluated per request:

1. WorkflowCheck: a workflow in ``inherit`` mode resolves to Router.default
   (its own model is ignored); in ``default`` mode (or with no mode) its own
   model wins if set, otherwise the chain falls through.
2. AgentCheck: the agent's configured model, memoized per session in the
   SessionModelCache. The agent-level outcome is cached even when it is the
   default model, so a reflection loop costs one store lookup per agent.
3. DefaultFallback: Router.default, or FALLBACK_DEFAULT_MODEL when unset.

Store failures (exceptions, timeouts, malformed answers) are logged and treated
as "not found"; the chain always ends with a model.
Workflow decisions are not cached.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from agent_router.core.session_cache import SessionModelCache
from agent_router.core.tag_extractor import DEFAULT_SESSION_ID, RoutingIds

FALLBACK_DEFAULT_MODEL = "anthropic,claude-sonnet-4"
DEFAULT_STORE_TIMEOUT = 5.0  # seconds

INHERIT = "inherit"

_FAILED = object()


class ResolutionSource(str, Enum):
    """Which tier produced the model."""

    WORKFLOW = "workflow"
    AGENT = "agent"
    SESSION_CACHE = "session_cache"
    DEFAULT = "default"
    FALLBACK = "fallback"


@dataclass
class RoutingDecision:
    """Outcome of one resolution."""

    model: str
    source: ResolutionSource
    session_id: str = DEFAULT_SESSION_ID
    agent_id: Optional[str] = None
    workflow_id: Optional[str] = None
    project_id: Optional[str] = None
    cache_hit: bool = False

    def as_dict(self) -> Dict[str, str]:
        return {"model": self.model}


def _read(obj: Any, *names: str) -> Any:
    for name in names:
        if isinstance(obj, Mapping):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return None


def _clean_model(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class ModelResolver:
    """Runs the fallback chain against a project store."""

    def __init__(
        self,
        store: Any,
        default_model: Optional[str] = None,
        cache: Optional[SessionModelCache] = None,
        logger: Optional[logging.Logger] = None,
        store_timeout: Optional[float] = DEFAULT_STORE_TIMEOUT,
    ):
        self.store = store
        self.cache = cache if cache is not None else SessionModelCache()
        self._default_model = _clean_model(default_model)
        self._log = logger or logging.getLogger(__name__)
        self._store_timeout = store_timeout
        self._warned_missing_default = False

    # ----------------------------------------------------------------- tiers

    def default_model(self) -> Tuple[str, ResolutionSource]:
        if self._default_model:
            return self._default_model, ResolutionSource.DEFAULT
        if not self._warned_missing_default:
            self._log.warning(
                f"Router.default not configured, using hardcoded fallback: {FALLBACK_DEFAULT_MODEL}"
            )
            self._warned_missing_default = True
        return FALLBACK_DEFAULT_MODEL, ResolutionSource.FALLBACK

    async def resolve(
        self,
        ids: RoutingIds,
        session_id: str = DEFAULT_SESSION_ID,
    ) -> RoutingDecision:
        decision = RoutingDecision(
            model="",
            source=ResolutionSource.DEFAULT,
            session_id=session_id,
            agent_id=ids.agent_id,
            workflow_id=ids.workflow_id,
        )

        if ids.workflow_id:
            resolved = await self._resolve_workflow(ids.workflow_id, decision)
            if resolved is not None:
                decision.model, decision.source = resolved
                return decision

        if ids.agent_id:
            decision.model, decision.source = await self._resolve_agent(
                ids.agent_id, session_id, decision
            )
            return decision

        decision.model, decision.source = self.default_model()
        return decision

    async def _resolve_workflow(
        self, workflow_id: str, decision: RoutingDecision
    ) -> Optional[Tuple[str, ResolutionSource]]:
        project_id = await self._call_store("detect_project_by_workflow_id", workflow_id)
        if project_id is _FAILED or not project_id:
            self._log.debug(f"Workflow {workflow_id} not found, checking agent")
            return None
        decision.project_id = project_id

        workflow = await self._call_store("get_workflow_by_id", workflow_id, project_id)
        if workflow is _FAILED or workflow is None:
            self._log.debug(f"Workflow {workflow_id} config unavailable, checking agent")
            return None

        inheritance = _read(workflow, "model_inheritance", "modelInheritance")
        inheritance = getattr(inheritance, "value", inheritance)
        if inheritance == INHERIT:
            self._log.debug(f"Workflow {workflow_id} inherits Router.default")
            return self.default_model()

        model = _clean_model(_read(workflow, "model"))
        if model:
            self._log.debug(f"Workflow {workflow_id} uses configured model {model}")
            return model, ResolutionSource.WORKFLOW

        self._log.debug(f"Workflow {workflow_id} has no model configured, checking agent")
        return None

    async def _resolve_agent(
        self, agent_id: str, session_id: str, decision: RoutingDecision
    ) -> Tuple[str, ResolutionSource]:
        project_id = await self._call_store("detect_project", agent_id)
        if project_id is _FAILED or not isinstance(project_id, str) or not project_id:
            project_id = None
        else:
            decision.project_id = project_id

        if project_id is not None:
            cached = self.cache.get_model(session_id, project_id, agent_id)
            if cached is not None:
                decision.cache_hit = True
                return cached, ResolutionSource.SESSION_CACHE

        agent_model = await self._call_store("get_model_by_agent_id", agent_id, project_id)
        if agent_model is _FAILED:
            # Not cached: the next call retries the store
            return self.default_model()

        model = _clean_model(agent_model)
        if model:
            source = ResolutionSource.AGENT
        else:
            self._log.debug(f"Agent {agent_id} has no model configured, using Router.default")
            model, source = self.default_model()

        if project_id is not None:
            self.cache.set_model(session_id, project_id, agent_id, model)
        return model, source

    # ----------------------------------------------------------------- store

    async def _call_store(self, method: str, *args: Any) -> Any:
        """Call a store method; any failure becomes ``_FAILED``."""
        try:
            result = getattr(self.store, method)(*args)
            if inspect.isawaitable(result):
                if self._store_timeout is not None:
                    result = await asyncio.wait_for(result, timeout=self._store_timeout)
                else:
                    result = await result
            return result
        except asyncio.TimeoutError:
            self._log.warning(f"Project store {method}{args} timed out, treating as not found")
            return _FAILED
        except Exception as e:
            self._log.warning(f"Project store {method}{args} failed: {e!r}, treating as not found")
            return _FAILED
