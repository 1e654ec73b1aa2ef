"""Pytest configuration and fixtures for agent-router tests.

``async def`` tests are marked ``@pytest.mark.asyncio``. When pytest-asyncio
is not installed, the ``pytest_pyfunc_call`` hook below runs coroutine tests
with the stdlib's asyncio so the suite still works.
"""

import asyncio
import inspect
import json
from typing import Any, Dict, Optional

import pytest

from agent_router import router as router_module
from agent_router.settings import clear_settings_cache
from tests.helpers import FakeStore


@pytest.fixture(autouse=True)
def isolate_settings_between_tests(monkeypatch, tmp_path_factory):
    """Keep env-derived settings and the router singleton out of other tests."""
    for name in [
        "AGENT_ROUTER_DEFAULT_MODEL",
        "AGENT_ROUTER_PROJECTS_FILE",
        "AGENT_ROUTER_LOG_LEVEL",
        "AGENT_ROUTER_STORE_TIMEOUT_SECONDS",
        "AGENT_ROUTER_CACHE__CAPACITY",
        "AGENT_ROUTER_RETRY__MAX_ATTEMPTS",
        "AGENT_ROUTER_RETRY__BASE_DELAY_MS",
        "AGENT_ROUTER_RETRY__MULTIPLIER",
        "AGENT_ROUTER_UPSTREAM__BASE_URL",
        "AGENT_ROUTER_UPSTREAM__API_KEY",
    ]:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
    clear_settings_cache()
    router_module.reset_router()

    yield

    clear_settings_cache()
    router_module.reset_router()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def write_projects(tmp_path):
    """Write a projects.json and return its path."""

    def _write(projects: Dict[str, Any], schema_version: Optional[int] = 1):
        path = tmp_path / "projects.json"
        doc: Dict[str, Any] = {"projects": projects}
        if schema_version is not None:
            doc["schemaVersion"] = schema_version
        path.write_text(json.dumps(doc), encoding="utf-8")
        return path

    return _write


def pytest_pyfunc_call(pyfuncitem: pytest.Item) -> Optional[bool]:
    """Enable running `async def` tests without external plugins.

    If the test function is a coroutine function, execute it via asyncio.run.
    Return True to signal that the call was handled.
    """
    test_func = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_func):
        kwargs = {
            name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
        }
        asyncio.run(test_func(**kwargs))
        return True
    return None
