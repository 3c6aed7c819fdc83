"""
agentflow: role-based AI agents driven by a deterministic workflow.

A task moves through architect, coder, reviewer, tester, fixer and judge
agents. A pure state machine decides who acts next; the runner invokes
the agent, turns its output into a transition and checkpoints the result.

Example:
    import asyncio
    from agentflow import run_workflow

    ctx = asyncio.run(run_workflow(".", "Add a /health endpoint", auto=True))
    print(ctx.state, ctx.generated_files)
"""

# Domain models and state machine
from agentflow.domain.events import TransitionEvent
from agentflow.domain.exceptions import (
    AppError,
    ConfigError,
    GitError,
    ProviderError,
    ValidationError,
    WorkflowError,
)
from agentflow.domain.models import (
    AgentRole,
    WorkflowContext,
    WorkflowState,
)
from agentflow.domain.workflow import (
    create_workflow_context,
    get_next_agent,
    is_terminal,
    transition,
)

# Application layer (orchestration)
from agentflow.application.agent import Agent
from agentflow.application.runner import RunnerSettings, WorkflowRunner
from agentflow.application.task_queue import QueuedTask

# Entry points
from agentflow.bootstrap import resume_workflow, run_task_queue, run_workflow
from agentflow.config import AppConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # State machine
    "AgentRole",
    "WorkflowState",
    "WorkflowContext",
    "TransitionEvent",
    "create_workflow_context",
    "transition",
    "is_terminal",
    "get_next_agent",
    # Orchestration
    "Agent",
    "WorkflowRunner",
    "RunnerSettings",
    "QueuedTask",
    # Entry points
    "run_workflow",
    "run_task_queue",
    "resume_workflow",
    "AppConfig",
    "load_config",
    # Exceptions
    "AppError",
    "ConfigError",
    "ProviderError",
    "GitError",
    "WorkflowError",
    "ValidationError",
]
