"""
Composition root.

Builds concrete adapters from configuration and hands them to the
application layer. This is the only module that knows both the runner
and the infrastructure implementations.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from agentflow.application.agent import Agent
from agentflow.application.runner import RunnerSettings, WorkflowRunner
from agentflow.application.task_queue import QueuedTask, parse_tasks
from agentflow.application.task_queue import run_task_queue as _run_queue
from agentflow.application.token_tracker import TokenTracker
from agentflow.config import AppConfig, load_config
from agentflow.domain.exceptions import ConfigError, ValidationError
from agentflow.domain.interfaces import (
    AgentBackendInterface,
    ApprovalInterface,
    SessionStoreInterface,
)
from agentflow.domain.models import AgentInput, AgentRole, TokenUsageEntry, WorkflowContext
from agentflow.domain.prompts import PLAN_TASK, planner_prompt
from agentflow.domain.qa_policy import QAPolicy, format_policy_for_agent
from agentflow.domain.workflow import create_workflow_context, is_terminal
from agentflow.infrastructure.cache import ResponseCache
from agentflow.infrastructure.context_loader import (
    format_context_for_agent,
    load_agent_prompt,
    load_coding_standards,
    load_context_documents,
    load_qa_policy,
)
from agentflow.infrastructure.context_optimizer import ContextOptimizer
from agentflow.infrastructure.files import FilesystemFileWriter
from agentflow.infrastructure.interactive import ConsoleApprovalPrompt
from agentflow.infrastructure.persistence import FilesystemSessionStore
from agentflow.infrastructure.pool import ConnectionPool
from agentflow.infrastructure.registry import BackendRegistry
from agentflow.infrastructure.resources import BackendResources
from agentflow.infrastructure.test_runner import CommandTestRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowOutcome:
    """Final context of a run plus where it was checkpointed."""

    context: WorkflowContext
    session_id: str | None
    token_usage: tuple[TokenUsageEntry, ...]


@dataclass(frozen=True)
class TaskPlan:
    """Tasks broken out of reference documents, ready for a queue."""

    tasks: tuple[str, ...]
    token_usage: tuple[TokenUsageEntry, ...]


def build_resources(config: AppConfig) -> BackendResources:
    limits = config.resources
    return BackendResources(
        pool=ConnectionPool(
            max_connections=limits.max_connections,
            idle_timeout=limits.idle_timeout,
            max_lifetime=limits.max_lifetime,
        ),
        cache=ResponseCache(max_size=limits.cache_size, ttl=limits.cache_ttl),
        optimizer=ContextOptimizer(
            max_tokens=limits.max_context_tokens,
            min_recent_tokens=limits.min_recent_tokens,
        ),
    )


def build_backend(
    provider: str, config: AppConfig, resources: BackendResources
) -> AgentBackendInterface:
    """
    Create the backend for a provider name.

    Raises:
        ConfigError: If no backend is registered for the provider
    """
    settings = config.provider(provider).model_dump(exclude_none=True)
    try:
        return BackendRegistry.create(provider, resources=resources, **settings)
    except KeyError as e:
        raise ConfigError(e.args[0], {"provider": provider}) from e


def build_agents(
    project_root: Path, config: AppConfig, resources: BackendResources
) -> dict[AgentRole, Agent]:
    """One agent per role; roles on the same provider share a backend."""
    backends: dict[str, AgentBackendInterface] = {}
    agents: dict[AgentRole, Agent] = {}
    for role in AgentRole:
        role_config = config.agent(role)
        if role_config.provider not in backends:
            backends[role_config.provider] = build_backend(
                role_config.provider, config, resources
            )
        agents[role] = Agent(
            role=role,
            backend=backends[role_config.provider],
            options=role_config.to_options(),
            prompt=load_agent_prompt(project_root, role),
        )
    return agents


def build_reference_context(
    project_root: Path,
    config: AppConfig,
    context_paths: Sequence[str],
    qa_policy: QAPolicy,
) -> str:
    """Project metadata, reference documents and policies for every agent."""
    project = config.project
    sections = [
        "## Project\n"
        f"- Language: {project.language}\n"
        f"- Framework: {project.framework}\n"
        f"- Test framework: {project.test_framework}"
    ]
    documents = format_context_for_agent(load_context_documents(project_root, tuple(context_paths)))
    if documents:
        sections.append(documents)
    standards = load_coding_standards(project_root)
    if standards.strip():
        sections.append(f"## Coding Standards\n{standards.strip()}")
    sections.append(format_policy_for_agent(qa_policy))
    return "\n\n".join(sections)


def build_runner(
    project_root: Path,
    config: AppConfig,
    resources: BackendResources,
    *,
    auto: bool = False,
    context_paths: Sequence[str] = (),
    streaming: bool = False,
    on_chunk: Callable[[str], None] | None = None,
    approval: ApprovalInterface | None = None,
    session_store: SessionStoreInterface | None = None,
    session_id: str | None = None,
    token_tracker: TokenTracker | None = None,
) -> WorkflowRunner:
    qa_policy = load_qa_policy(project_root)
    workflow = config.workflow
    return WorkflowRunner(
        agents=build_agents(project_root, config, resources),
        file_writer=FilesystemFileWriter(),
        test_runner=CommandTestRunner(workflow.test_command, workflow.test_timeout),
        approval=approval or ConsoleApprovalPrompt(),
        session_store=session_store or FilesystemSessionStore(),
        project_root=project_root,
        settings=RunnerSettings(
            auto=auto,
            human_approval=workflow.human_approval,
            auto_run_tests=workflow.auto_run_tests,
            streaming=streaming or workflow.streaming,
        ),
        token_tracker=token_tracker,
        reference_context=build_reference_context(
            project_root, config, context_paths, qa_policy
        ),
        qa_policy=qa_policy,
        on_chunk=on_chunk,
        session_id=session_id,
    )


async def execute_workflow(
    project_root: Path,
    task: str,
    *,
    auto: bool = False,
    context_paths: Sequence[str] = (),
    streaming: bool = False,
    config: AppConfig | None = None,
    on_chunk: Callable[[str], None] | None = None,
    approval: ApprovalInterface | None = None,
    session_store: SessionStoreInterface | None = None,
    resources: BackendResources | None = None,
) -> WorkflowOutcome:
    """
    Run one task end to end.

    Resources passed in are left open for the caller; resources built
    here are closed when the run ends.

    Raises:
        ConfigError: If the configuration is invalid
        ValidationError: If the task is empty
    """
    project_root = Path(project_root)
    config = config or load_config(project_root)
    ctx = create_workflow_context(task, config.workflow.max_iterations)
    owned = resources is None
    resources = resources or build_resources(config)
    try:
        runner = build_runner(
            project_root,
            config,
            resources,
            auto=auto,
            context_paths=context_paths,
            streaming=streaming,
            on_chunk=on_chunk,
            approval=approval,
            session_store=session_store,
        )
        final = await runner.run(ctx)
    finally:
        if owned:
            await resources.aclose()

    logger.info("Workflow finished in state %s", final.state.value)
    return WorkflowOutcome(final, runner.session_id, runner.token_tracker.entries)


async def run_workflow(
    project_root: Path,
    task: str,
    auto: bool = False,
    context_paths: Sequence[str] = (),
    streaming: bool = False,
    config: AppConfig | None = None,
) -> WorkflowContext:
    """Run one task and return its final context."""
    outcome = await execute_workflow(
        project_root,
        task,
        auto=auto,
        context_paths=context_paths,
        streaming=streaming,
        config=config,
    )
    return outcome.context


async def resume_workflow(
    project_root: Path,
    session_id: str,
    auto: bool = False,
    config: AppConfig | None = None,
    *,
    approval: ApprovalInterface | None = None,
    session_store: SessionStoreInterface | None = None,
) -> WorkflowOutcome:
    """
    Continue a checkpointed session from its stored context.

    A session that already ended is returned unchanged.

    Raises:
        ValidationError: If the session does not exist or cannot be read
    """
    project_root = Path(project_root)
    store = session_store or FilesystemSessionStore()
    snapshot = store.load(project_root, session_id)
    if snapshot is None:
        raise ValidationError(f"Session not found: {session_id}", {"session_id": session_id})

    if is_terminal(snapshot.context):
        logger.info("Session %s already ended in %s", session_id, snapshot.context.state.value)
        return WorkflowOutcome(snapshot.context, session_id, snapshot.token_usage)

    config = config or load_config(project_root)
    resources = build_resources(config)
    try:
        runner = build_runner(
            project_root,
            config,
            resources,
            auto=auto,
            approval=approval,
            session_store=store,
            session_id=session_id,
            token_tracker=TokenTracker(snapshot.token_usage),
        )
        final = await runner.run(snapshot.context)
    finally:
        await resources.aclose()
    return WorkflowOutcome(final, runner.session_id, runner.token_tracker.entries)


async def run_task_queue(
    project_root: Path,
    tasks: Sequence[str],
    auto: bool = False,
    stop_on_failure: bool = False,
    config: AppConfig | None = None,
    *,
    approval: ApprovalInterface | None = None,
    session_store: SessionStoreInterface | None = None,
) -> list[QueuedTask]:
    """Run tasks one after another, sharing one set of backend resources."""
    project_root = Path(project_root)
    config = config or load_config(project_root)
    resources = build_resources(config)

    async def run_one(task: str) -> WorkflowContext:
        outcome = await execute_workflow(
            project_root,
            task,
            auto=auto,
            config=config,
            approval=approval,
            session_store=session_store,
            resources=resources,
        )
        return outcome.context

    try:
        return await _run_queue(tasks, run_one, stop_on_failure=stop_on_failure)
    finally:
        await resources.aclose()


async def plan_tasks(
    project_root: Path,
    docs: Sequence[str],
    context_paths: Sequence[str] = (),
    config: AppConfig | None = None,
) -> TaskPlan:
    """
    Break reference documents into an ordered task list.

    The architect's provider and model read the documents with planning
    instructions and answer one task per line, in the format
    run_task_queue() accepts.

    Raises:
        ValidationError: If a document is missing or nothing could be loaded
        ProviderError: If the model call fails
    """
    project_root = Path(project_root)
    for doc in docs:
        if not (project_root / doc).is_file():
            raise ValidationError(f"File not found: {doc}", {"path": doc})

    documents = load_context_documents(project_root, (*docs, *context_paths))
    if not documents:
        raise ValidationError("No documents could be loaded")

    config = config or load_config(project_root)
    resources = build_resources(config)
    role_config = config.agent(AgentRole.ARCHITECT)
    try:
        agent = Agent(
            role=AgentRole.ARCHITECT,
            backend=build_backend(role_config.provider, config, resources),
            options=role_config.to_options(),
            prompt=planner_prompt(),
        )
        output = await agent.execute(
            AgentInput(task=PLAN_TASK, context=format_context_for_agent(documents))
        )
    finally:
        await resources.aclose()

    tracker = TokenTracker()
    tracker.record(AgentRole.ARCHITECT, output.model, output.usage)
    tasks = tuple(parse_tasks(output.content))
    logger.info("Planned %d task(s) from %d document(s)", len(tasks), len(documents))
    return TaskPlan(tasks, tracker.entries)
