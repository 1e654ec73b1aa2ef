import importlib.metadata

try:
    _detected_version = importlib.metadata.version("agent-router")
    __version__ = _detected_version if _detected_version else "0.0.0-dev"
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout
    __version__ = "0.0.0-dev"

from agent_router.settings import (
    CacheSettings,
    RetrySettings,
    RouterSettings,
    UpstreamSettings,
    clear_settings_cache,
    configure_logging,
    get_settings,
)
from agent_router.router import AgentRouter, get_router, reset_router
from agent_router.project_store import (
    InvalidModelStringError,
    JsonProjectStore,
    ModelInheritance,
    ProjectStore,
    ProjectStoreError,
)

__all__ = [
    "__version__",
    # Settings
    "RouterSettings",
    "CacheSettings",
    "RetrySettings",
    "UpstreamSettings",
    "get_settings",
    "clear_settings_cache",
    "configure_logging",
    # Router
    "AgentRouter",
    "get_router",
    "reset_router",
    # Project store
    "ProjectStore",
    "JsonProjectStore",
    "ModelInheritance",
    "ProjectStoreError",
    "InvalidModelStringError",
]
