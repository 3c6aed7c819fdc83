"""
Domain layer for agentflow.

Contains the workflow state machine, its data model and the ports the
application layer depends on. No external dependencies.
"""

from agentflow.domain.events import (
    Abort,
    CodeGenerated,
    FixApplied,
    PlanApproved,
    QAApproved,
    QARejected,
    ReviewDone,
    SpecReady,
    TestsFailed,
    TestsPassed,
    TestsWritten,
    TransitionEvent,
)
from agentflow.domain.exceptions import (
    AppError,
    ConfigError,
    GitError,
    ProviderError,
    ValidationError,
    WorkflowError,
)
from agentflow.domain.interfaces import (
    AgentBackendInterface,
    ApprovalInterface,
    FileWriterInterface,
    SessionStoreInterface,
    TestRunnerInterface,
)
from agentflow.domain.models import (
    TERMINAL_STATES,
    AgentInput,
    AgentOutput,
    AgentRole,
    ApprovalDecision,
    BackendResponse,
    ChatMessage,
    ContextDocument,
    InvocationOptions,
    SessionSnapshot,
    TaskStatus,
    TestRunResult,
    TokenUsage,
    TokenUsageEntry,
    TransitionRecord,
    WorkflowContext,
    WorkflowState,
)
from agentflow.domain.workflow import (
    create_workflow_context,
    get_next_agent,
    is_terminal,
    transition,
)

__all__ = [
    # Models
    "AgentRole",
    "WorkflowState",
    "TERMINAL_STATES",
    "TransitionRecord",
    "WorkflowContext",
    "ChatMessage",
    "TokenUsage",
    "InvocationOptions",
    "BackendResponse",
    "AgentInput",
    "AgentOutput",
    "TestRunResult",
    "ApprovalDecision",
    "TokenUsageEntry",
    "ContextDocument",
    "SessionSnapshot",
    "TaskStatus",
    # Events
    "TransitionEvent",
    "SpecReady",
    "PlanApproved",
    "CodeGenerated",
    "ReviewDone",
    "TestsWritten",
    "TestsPassed",
    "TestsFailed",
    "FixApplied",
    "QAApproved",
    "QARejected",
    "Abort",
    # State machine
    "create_workflow_context",
    "transition",
    "is_terminal",
    "get_next_agent",
    # Interfaces
    "AgentBackendInterface",
    "FileWriterInterface",
    "TestRunnerInterface",
    "ApprovalInterface",
    "SessionStoreInterface",
    # Exceptions
    "AppError",
    "ConfigError",
    "ProviderError",
    "GitError",
    "WorkflowError",
    "ValidationError",
]
