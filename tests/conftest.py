"""Shared pytest fixtures for agentflow tests."""

from collections.abc import Iterator

import pytest
from fakes import (
    HAPPY_PATH_SCRIPT,
    FakeClock,
    PlanningBackend,
    RecordingFileWriter,
    ScriptedApproval,
    ScriptedBackend,
    ScriptedTestRunner,
    SilentBackend,
    provider_config,
)

from agentflow.config import AppConfig
from agentflow.domain.models import AgentRole, InvocationOptions, WorkflowContext
from agentflow.domain.workflow import create_workflow_context
from agentflow.infrastructure.llm.mock import MockBackend
from agentflow.infrastructure.persistence.memory import InMemorySessionStore
from agentflow.infrastructure.registry import BackendRegistry


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def sample_context() -> WorkflowContext:
    """Create a fresh workflow context."""
    return create_workflow_context("Add a /health endpoint", max_iterations=3)


@pytest.fixture
def options() -> InvocationOptions:
    """Create invocation options for the mock model."""
    return InvocationOptions(model="mock-model", temperature=0.2, max_tokens=512)


@pytest.fixture
def happy_path_responses() -> dict[AgentRole, list[str]]:
    """Agent responses that drive a workflow straight to QA approval."""
    return {role: list(responses) for role, responses in HAPPY_PATH_SCRIPT.items()}


@pytest.fixture
def scripted_backends() -> Iterator[None]:
    """Register the scripted, silent and planning providers for the test's duration."""
    BackendRegistry.clear()
    PlanningBackend.instances.clear()
    BackendRegistry.register("scripted", ScriptedBackend)
    BackendRegistry.register("silent", SilentBackend)
    BackendRegistry.register("planning", PlanningBackend)
    yield
    BackendRegistry.clear()


@pytest.fixture
def scripted_config(scripted_backends: None) -> AppConfig:
    """Config that routes every role to the scripted happy-path backend."""
    return provider_config("scripted")


@pytest.fixture
def happy_path_backend(happy_path_responses: dict[AgentRole, list[str]]) -> MockBackend:
    """Mock backend scripted with the happy-path responses."""
    return MockBackend(responses=happy_path_responses, streaming=False)


@pytest.fixture
def session_store() -> InMemorySessionStore:
    """Create an in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def file_writer() -> RecordingFileWriter:
    """File writer that records agent output instead of touching disk."""
    return RecordingFileWriter()


@pytest.fixture
def passing_tests() -> ScriptedTestRunner:
    """Test runner that always passes."""
    return ScriptedTestRunner()


@pytest.fixture
def approval() -> ScriptedApproval:
    """Approval gate that always approves."""
    return ScriptedApproval()
