"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Callable, Generator
from itertools import count
from typing import Any

import pytest

# Set test environment
os.environ.setdefault("AGENTRUN_DEBUG", "true")
os.environ.setdefault("AGENTRUN_LOG_LEVEL", "DEBUG")

WORKSPACE_ID = "ws-1"
DOCUMENT_ID = "doc-1"
COORDINATOR_ID = "agent-coordinator"
WRITER_ID = "agent-writer"


@pytest.fixture
def mock_settings() -> Generator:
    """Provide fresh settings for testing."""
    from agentrun.core.config import clear_settings_cache, get_settings

    # Clear any cached settings
    clear_settings_cache()

    yield get_settings()

    # Clear again after test
    clear_settings_cache()


@pytest.fixture
def make_run() -> Callable[..., Any]:
    """Factory for runs with sensible defaults."""
    from agentrun.decomposition.models import AgentRun

    def _make(**overrides: Any) -> AgentRun:
        fields: dict[str, Any] = {
            "id": "run-1",
            "workspace_id": WORKSPACE_ID,
            "document_id": DOCUMENT_ID,
            "coordinator_agent_id": COORDINATOR_ID,
            "objective": "Rewrite the onboarding guide",
            "max_parallel_agents": 2,
        }
        fields.update(overrides)
        return AgentRun(**fields)

    return _make


@pytest.fixture
def make_task() -> Callable[..., Any]:
    """Factory for tasks; ids default to task-1, task-2, ... per test."""
    from agentrun.decomposition.models import AgentTask, TaskType

    ids = count(1)

    def _make(**overrides: Any) -> Any:
        fields: dict[str, Any] = {
            "id": f"task-{next(ids)}",
            "run_id": "run-1",
            "title": "Draft introduction",
            "task_type": TaskType.RESEARCH,
            "assigned_agent_id": WRITER_ID,
        }
        fields.update(overrides)
        return AgentTask(**fields)

    return _make


@pytest.fixture
def run(make_run: Callable[..., Any]) -> Any:
    """A fresh active run with two parallel slots."""
    return make_run()


@pytest.fixture
def directory() -> Any:
    """Agent directory with a coordinator and a writer in the workspace."""
    from agentrun.store.memory import InMemoryAgentDirectory

    agents = InMemoryAgentDirectory()
    agents.register(COORDINATOR_ID, WORKSPACE_ID)
    agents.register(WRITER_ID, WORKSPACE_ID)
    agents.register("agent-reviewer", WORKSPACE_ID)
    agents.register("agent-retired", WORKSPACE_ID, active=False)
    agents.register("agent-elsewhere", "ws-2")
    return agents


@pytest.fixture
def store() -> Any:
    from agentrun.store.memory import InMemoryRunStore

    return InMemoryRunStore()


@pytest.fixture
def coordinator(store: Any, directory: Any, mock_settings: Any) -> Any:
    """Coordinator over the in-memory collaborators."""
    from agentrun.orchestration.coordinator import RunCoordinator

    return RunCoordinator(store, directory, settings=mock_settings)


@pytest.fixture
def run_request() -> Any:
    from agentrun.decomposition.models import RunCreate

    return RunCreate(
        workspace_id=WORKSPACE_ID,
        document_id=DOCUMENT_ID,
        coordinator_agent_id=COORDINATOR_ID,
        objective="Rewrite the onboarding guide",
        max_parallel_agents=2,
    )


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
