"""
Application layer for agentflow.

Orchestrates agents over the workflow state machine. Depends only on
domain ports; adapters are wired in by agentflow.bootstrap.
"""

from agentflow.application.agent import Agent
from agentflow.application.runner import (
    RunnerSettings,
    WorkflowRunner,
    build_agent_context,
    needs_approval,
)
from agentflow.application.task_queue import (
    QueuedTask,
    parse_tasks,
    run_task_queue,
    summarize_queue,
)
from agentflow.application.token_tracker import TokenTracker

__all__ = [
    "Agent",
    "RunnerSettings",
    "WorkflowRunner",
    "build_agent_context",
    "needs_approval",
    "QueuedTask",
    "parse_tasks",
    "run_task_queue",
    "summarize_queue",
    "TokenTracker",
]
