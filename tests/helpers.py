"""Shared builders and fakes for the agent-router tests."""

from typing import Any, Dict, List, Optional

AGENT_A = "6ba7b810-9dad-41d1-80b4-00c04fd430c8"
AGENT_B = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
AGENT_C = "f47ac10b-58cc-4372-a567-0e02b2c3d479"
AGENT_D = "9b2d5c1e-3f4a-4b6c-8d7e-0a1b2c3d4e5f"
WORKFLOW_ID = "550e8400-e29b-41d4-a716-446655440000"
PROJECT_ID = "a3bb189e-8bf9-4888-9912-ace4e6543002"


def make_request(
    system_text: Optional[str] = None,
    messages: Optional[List[Dict[str, Any]]] = None,
    session_id: Optional[str] = None,
    model: str = "claude-sonnet-4",
) -> Dict[str, Any]:
    """Build a request shaped like the gateway hands it over."""
    body: Dict[str, Any] = {"model": model, "messages": messages or []}
    if system_text is not None:
        body["system"] = [{"type": "text", "text": system_text}]
    if session_id is not None:
        body["metadata"] = {"user_id": f"user_123_session_{session_id}"}
    return {"body": body}


def agent_marker(agent_id: str) -> str:
    return f"<!-- CCR-AGENT-ID: {agent_id} -->"


def workflow_marker(workflow_id: str) -> str:
    return f"<!-- CCR-WORKFLOW-ID: {workflow_id} -->"


class FakeStore:
    """In-memory project store that counts lookups.

    ``agents`` maps agent id -> model (or None), ``workflows`` maps workflow
    id -> dict with ``model`` / ``modelInheritance``.
    """

    def __init__(
        self,
        agents: Optional[Dict[str, Optional[str]]] = None,
        workflows: Optional[Dict[str, Dict[str, Any]]] = None,
        project_id: str = PROJECT_ID,
    ):
        self.agents = dict(agents or {})
        self.workflows = dict(workflows or {})
        self.project_id = project_id
        self.calls: Dict[str, int] = {}
        self.fail_on: set = set()

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    async def detect_project(self, agent_id):
        self._count("detect_project")
        return self.project_id if agent_id in self.agents else None

    async def get_model_by_agent_id(self, agent_id, project_id=None):
        self._count("get_model_by_agent_id")
        return self.agents.get(agent_id)

    async def detect_project_by_workflow_id(self, workflow_id):
        self._count("detect_project_by_workflow_id")
        return self.project_id if workflow_id in self.workflows else None

    async def get_workflow_by_id(self, workflow_id, project_id):
        self._count("get_workflow_by_id")
        return self.workflows.get(workflow_id)
