"""Project metadata store.

Projects, their agents and their workflows live in a ``projects.json``
document owned by the project tooling. The router only reads it, plus two
validated writes used to assign models. Shape::

    {
      "schemaVersion": 1,
      "projects": {
        "<project-id>": {
          "id": "...", "name": "...", "path": "...",
          "agents": [{"id": "<uuid4>", "name": "dev.md", "model": "openai,gpt-4o"}],
          "workflows": [{"id": "<uuid4>", "name": "party-mode",
                         "model": "gemini,gemini-2.0-flash",
                         "modelInheritance": "inherit"}]
        }
      }
    }

Lookups never raise for unknown or malformed ids; they return None.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agent_router.validation import (
    is_valid_agent_id,
    is_valid_model_string,
    is_valid_workflow_id,
)

PROJECTS_SCHEMA_VERSION = 1


class ProjectStoreError(LookupError):
    """Raised by writes that target an unknown project, agent or workflow."""


class InvalidModelStringError(ValueError):
    """Raised when a model string fails validation at write time."""

    def __init__(self, model: str):
        super().__init__(
            f"Invalid model string format: {model}. "
            'Expected format: "provider,modelname" (e.g., "openai,gpt-4o")'
        )
        self.model = model


# =============================================================================
# Data model
# =============================================================================


class ModelInheritance(str, Enum):
    """How a workflow picks its model."""

    INHERIT = "inherit"  # always Router.default, own model ignored
    DEFAULT = "default"  # own model if set, otherwise fall through


class _StoreModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())


class Agent(_StoreModel):
    id: str
    name: str = ""
    relative_path: Optional[str] = Field(default=None, alias="relativePath")
    absolute_path: Optional[str] = Field(default=None, alias="absolutePath")
    model: Optional[str] = None


class Workflow(_StoreModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    model: Optional[str] = None
    model_inheritance: Optional[ModelInheritance] = Field(default=None, alias="modelInheritance")

    @property
    def inheritance(self) -> ModelInheritance:
        """Absent inheritance behaves like ``default``."""
        return self.model_inheritance or ModelInheritance.DEFAULT


class Project(_StoreModel):
    id: str
    name: str = ""
    path: str = ""
    agents: List[Agent] = Field(default_factory=list)
    workflows: List[Workflow] = Field(default_factory=list)
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    def find_agent(self, agent_id: str) -> Optional[Agent]:
        agent_id = agent_id.lower()
        return next((a for a in self.agents if a.id.lower() == agent_id), None)

    def find_workflow(self, workflow_id: str) -> Optional[Workflow]:
        workflow_id = workflow_id.lower()
        return next((w for w in self.workflows if w.id.lower() == workflow_id), None)


class ProjectsData(_StoreModel):
    schema_version: Optional[int] = Field(default=None, alias="schemaVersion")
    projects: Dict[str, Project] = Field(default_factory=dict)


# =============================================================================
# Store protocol
# =============================================================================


class ProjectStore(Protocol):
    """What the resolver reads. Implementations may be sync or async."""

    async def get_model_by_agent_id(
        self, agent_id: str, project_id: Optional[str] = None
    ) -> Optional[str]: ...

    async def detect_project(self, agent_id: str) -> Optional[str]: ...

    async def detect_project_by_workflow_id(self, workflow_id: str) -> Optional[str]: ...

    async def get_workflow_by_id(self, workflow_id: str, project_id: str) -> Optional[Workflow]: ...


class JsonProjectStore:
    """``projects.json`` backed store.

    The document is re-parsed only when the file's mtime or size changes.
    """

    def __init__(
        self,
        projects_file: Union[str, Path],
        logger: Optional[logging.Logger] = None,
    ):
        self.projects_file = Path(projects_file).expanduser()
        self._log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._cached: Optional[ProjectsData] = None
        self._cached_signature: Optional[Tuple[int, int]] = None

    # ------------------------------------------------------------------ reads

    def load_projects(self) -> ProjectsData:
        """Load the projects document, degrading to an empty one on any problem."""
        try:
            stat = self.projects_file.stat()
        except FileNotFoundError:
            self._log.debug(f"projects.json not found at {self.projects_file}, agent system inactive")
            return ProjectsData()
        except OSError as e:
            self._log.error(f"Unexpected error reading projects.json: {e}")
            return ProjectsData()

        signature = (stat.st_mtime_ns, stat.st_size)
        with self._lock:
            if self._cached is not None and self._cached_signature == signature:
                return self._cached

        data = self._parse()
        with self._lock:
            self._cached = data
            self._cached_signature = signature
        return data

    def _parse(self) -> ProjectsData:
        try:
            raw = json.loads(self.projects_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            self._log.warning(f"Failed to load projects.json: {e}")
            return ProjectsData()
        except OSError as e:
            self._log.error(f"Unexpected error loading projects.json: {e}")
            return ProjectsData()

        if not isinstance(raw, dict) or not isinstance(raw.get("projects"), dict):
            self._log.warning("projects.json has invalid schema, returning empty projects")
            return ProjectsData()

        version = raw.get("schemaVersion")
        if version is None:
            self._log.debug(
                "projects.json has no schema version, loading with backward compatibility"
            )
        elif version != PROJECTS_SCHEMA_VERSION:
            self._log.warning(
                f"Schema version mismatch: expected {PROJECTS_SCHEMA_VERSION}, "
                f"found {version}. Attempting compatibility mode."
            )

        try:
            return ProjectsData.model_validate(raw)
        except ValidationError as e:
            self._log.warning(f"projects.json failed validation: {e.error_count()} errors")
            return ProjectsData()

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._cached_signature = None

    async def _load(self) -> ProjectsData:
        """load_projects off the event loop; file IO may block."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.load_projects)

    @staticmethod
    def _find_agent(
        data: ProjectsData, agent_id: str
    ) -> Tuple[Optional[Project], Optional[Agent]]:
        for project in data.projects.values():
            agent = project.find_agent(agent_id)
            if agent is not None:
                return project, agent
        return None, None

    async def detect_project(self, agent_id: str) -> Optional[str]:
        if not is_valid_agent_id(agent_id):
            self._log.debug(f"Invalid agent ID format in detect_project: {agent_id}")
            return None
        project, _ = self._find_agent(await self._load(), agent_id)
        if project is None:
            self._log.debug(f"Agent {agent_id} not found in any project")
            return None
        return project.id

    async def get_model_by_agent_id(
        self, agent_id: str, project_id: Optional[str] = None
    ) -> Optional[str]:
        if not is_valid_agent_id(agent_id):
            self._log.debug(f"Invalid agent ID format: {agent_id}")
            return None

        data = await self._load()
        if project_id:
            project = data.projects.get(project_id)
            agent = project.find_agent(agent_id) if project else None
        else:
            _, agent = self._find_agent(data, agent_id)

        if agent is None:
            self._log.debug(f"Agent not found: {agent_id}")
            return None
        if not agent.model:
            self._log.debug(f"Agent {agent_id} found but no model configured")
            return None
        return agent.model

    async def detect_project_by_workflow_id(self, workflow_id: str) -> Optional[str]:
        if not is_valid_workflow_id(workflow_id):
            return None
        for project in (await self._load()).projects.values():
            if project.find_workflow(workflow_id) is not None:
                return project.id
        return None

    async def get_workflow_by_id(self, workflow_id: str, project_id: str) -> Optional[Workflow]:
        if not is_valid_workflow_id(workflow_id):
            return None
        project = (await self._load()).projects.get(project_id)
        if project is None:
            return None
        return project.find_workflow(workflow_id)

    async def get_model_by_workflow_id(
        self, workflow_id: str, project_id: Optional[str] = None
    ) -> Optional[str]:
        project_id = project_id or await self.detect_project_by_workflow_id(workflow_id)
        if not project_id:
            return None
        workflow = await self.get_workflow_by_id(workflow_id, project_id)
        return workflow.model if workflow else None

    # ----------------------------------------------------------------- writes

    def set_agent_model(self, project_id: str, agent_id: str, model: Optional[str]) -> None:
        """Assign (or clear, with None) an agent's model."""
        if model is not None and not is_valid_model_string(model):
            raise InvalidModelStringError(model)

        data = self._load_for_write()
        project = data.projects.get(project_id)
        if project is None:
            raise ProjectStoreError(f"Project not found: {project_id}")
        agent = project.find_agent(agent_id)
        if agent is None:
            raise ProjectStoreError(f"Agent not found: {agent_id} in project: {project_id}")

        agent.model = model
        self._save(data, project)

    def set_workflow_model(
        self,
        project_id: str,
        workflow_id: str,
        model: Optional[str],
        inheritance: Optional[ModelInheritance] = None,
    ) -> None:
        """Assign a workflow's model and, optionally, its inheritance mode."""
        if model is not None and not is_valid_model_string(model):
            raise InvalidModelStringError(model)

        data = self._load_for_write()
        project = data.projects.get(project_id)
        if project is None:
            raise ProjectStoreError(f"Project not found: {project_id}")
        workflow = project.find_workflow(workflow_id)
        if workflow is None:
            raise ProjectStoreError(f"Workflow not found: {workflow_id} in project: {project_id}")

        workflow.model = model
        if inheritance is not None:
            workflow.model_inheritance = ModelInheritance(inheritance)
        self._save(data, project)

    def _load_for_write(self) -> ProjectsData:
        # Writes work on a private copy so readers never see a half-edited document
        return self.load_projects().model_copy(deep=True)

    def _save(self, data: ProjectsData, touched: Project) -> None:
        touched.updated_at = datetime.now(timezone.utc).isoformat()
        if data.schema_version is None:
            data.schema_version = PROJECTS_SCHEMA_VERSION

        payload = data.model_dump(by_alias=True, exclude_none=True, mode="json")
        self.projects_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=".projects-", suffix=".json", dir=str(self.projects_file.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.projects_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        self.invalidate()
