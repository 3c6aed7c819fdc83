"""
Domain models for agentflow.

Pure data structures shared by every layer. All models are immutable:
frozen dataclasses with tuple collections.
"""

from dataclasses import dataclass, field
from enum import Enum

# =============================================================================
# ROLES AND STATES
# =============================================================================


class AgentRole(str, Enum):
    """Specialized agent roles in the pipeline."""

    ARCHITECT = "architect"  # Writes the spec and plan
    CODER = "coder"  # Implements the plan
    REVIEWER = "reviewer"  # Approves or requests changes
    TESTER = "tester"  # Writes tests
    FIXER = "fixer"  # Addresses review feedback or test failures
    JUDGE = "judge"  # Final QA verdict

    @property
    def label(self) -> str:
        return self.value.capitalize()


class WorkflowState(str, Enum):
    """States of the workflow state machine."""

    IDLE = "idle"
    SPEC_CREATED = "spec_created"
    PLAN_APPROVED = "plan_approved"
    CODE_GENERATED = "code_generated"
    REVIEW_DONE = "review_done"
    REVIEW_REJECTED = "review_rejected"
    TESTS_WRITTEN = "tests_written"
    TESTS_FAILED = "tests_failed"
    TESTS_PASSED = "tests_passed"
    FIX_APPLIED = "fix_applied"
    QA_APPROVED = "qa_approved"
    QA_REJECTED = "qa_rejected"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES = frozenset({WorkflowState.COMPLETE, WorkflowState.FAILED})


# =============================================================================
# WORKFLOW CONTEXT
# =============================================================================


@dataclass(frozen=True)
class TransitionRecord:
    """One applied transition in the workflow history."""

    from_state: WorkflowState
    to_state: WorkflowState
    event: str  # Wire name of the event, e.g. "REVIEW_DONE"
    timestamp: str  # ISO-8601 UTC


@dataclass(frozen=True)
class WorkflowContext:
    """
    Everything known about one workflow run.

    Never mutated in place: each transition produces a new value. The
    history length always equals the number of transitions applied.
    """

    task: str
    state: WorkflowState = WorkflowState.IDLE
    iteration: int = 0
    max_iterations: int = 5
    spec: str | None = None
    plan: str | None = None
    review_feedback: str | None = None
    test_failures: str | None = None
    qa_feedback: str | None = None  # Reason from the last QA rejection
    error: str | None = None  # Reason recorded by ABORT
    generated_files: tuple[str, ...] = ()
    history: tuple[TransitionRecord, ...] = ()


# =============================================================================
# BACKEND / AGENT I/O
# =============================================================================


@dataclass(frozen=True)
class ChatMessage:
    """A single chat message sent to a model backend."""

    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported (or estimated) for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class InvocationOptions:
    """Per-role model parameters."""

    model: str
    temperature: float = 0.7
    max_tokens: int = 4096


@dataclass(frozen=True)
class BackendResponse:
    """Result of a single backend invocation."""

    content: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    cached: bool = False


@dataclass(frozen=True)
class AgentInput:
    """Input handed to an agent for one step."""

    task: str
    context: str = ""
    previous_output: str | None = None


@dataclass(frozen=True)
class AgentOutput:
    """What an agent produced for one step."""

    role: AgentRole
    content: str
    model: str
    tokens_used: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class TestRunResult:
    """Outcome of running the project's test command."""

    __test__ = False  # not a pytest test class

    passed: bool
    output: str
    exit_code: int


class ApprovalDecision(str, Enum):
    """Answer from the human approval gate."""

    APPROVE = "approve"
    RETRY = "retry"
    ABORT = "abort"


# =============================================================================
# SUPPORTING RECORDS
# =============================================================================


@dataclass(frozen=True)
class TokenUsageEntry:
    """Append-only record of tokens spent by one agent call."""

    role: AgentRole
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    timestamp: str


@dataclass(frozen=True)
class ContextDocument:
    """A reference document supplied to agents (spec, notes, conventions)."""

    source: str  # Absolute path it was read from
    name: str  # File name shown to agents
    content: str


@dataclass(frozen=True)
class SessionSnapshot:
    """A persisted checkpoint of one workflow run."""

    session_id: str
    created_at: str
    updated_at: str
    context: WorkflowContext
    token_usage: tuple[TokenUsageEntry, ...] = ()


class TaskStatus(str, Enum):
    """Status of a task in a batch queue."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
