"""
Domain interfaces (Ports) for agentflow.

These abstract base classes define the contracts the runner relies on.
Concrete adapters live in agentflow.infrastructure; the application layer
only ever sees these ports.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentflow.domain.models import (
        AgentRole,
        ApprovalDecision,
        BackendResponse,
        InvocationOptions,
        SessionSnapshot,
        TestRunResult,
        TokenUsageEntry,
        WorkflowContext,
    )


class AgentBackendInterface(ABC):
    """
    Port for model backends.

    A backend turns a system prompt and a user prompt into text. It may be
    a remote API, a local model server, or a scripted fake. Backends that
    can produce incremental output set supports_streaming to True.

    Note (Errors):
        Every failure, whether transport, timeout or a rejected request,
        must surface as ProviderError.
    """

    supports_streaming: bool = False

    @abstractmethod
    async def invoke(
        self,
        role: "AgentRole",
        system_prompt: str,
        user_prompt: str,
        options: "InvocationOptions",
    ) -> "BackendResponse":
        """
        Run one completion.

        Args:
            role: Role the call is made for (used for logging and routing)
            system_prompt: Role instructions
            user_prompt: Task, context and previous output
            options: Model name, temperature and max tokens

        Returns:
            BackendResponse with the generated text and token usage

        Raises:
            ProviderError: If the call fails for any reason
        """
        pass

    @abstractmethod
    def stream(
        self,
        role: "AgentRole",
        system_prompt: str,
        user_prompt: str,
        options: "InvocationOptions",
    ) -> AsyncIterator[str]:
        """
        Run one completion, yielding text chunks as they arrive.

        Only called when supports_streaming is True.

        Raises:
            ProviderError: If the call fails for any reason
        """
        pass


class FileWriterInterface(ABC):
    """Port for turning agent output into files on disk."""

    @abstractmethod
    def parse_and_write(self, project_root: Path, raw_text: str) -> list[str]:
        """
        Extract file blocks from agent output and write them.

        Args:
            project_root: Root directory all paths must stay inside
            raw_text: Raw agent output

        Returns:
            Paths written, relative to project_root (may be empty)
        """
        pass


class TestRunnerInterface(ABC):
    """Port for running the project's test suite."""

    __test__ = False

    @abstractmethod
    async def run(self, project_root: Path) -> "TestRunResult":
        """
        Run the test command in project_root.

        Never raises: timeouts and launch failures are reported as a
        failed result.
        """
        pass


class ApprovalInterface(ABC):
    """Port for the human approval gate between agent steps."""

    @abstractmethod
    async def ask(
        self, ctx: "WorkflowContext", role: "AgentRole", preview: str
    ) -> "ApprovalDecision":
        """
        Ask whether to accept an agent's output.

        Args:
            ctx: Context before the output is applied
            role: Role that produced the output
            preview: The agent output

        Returns:
            approve, retry or abort
        """
        pass


class SessionStoreInterface(ABC):
    """Port for persisting workflow checkpoints."""

    @abstractmethod
    def save(
        self,
        project_root: Path,
        context: "WorkflowContext",
        token_usage: Sequence["TokenUsageEntry"] = (),
        session_id: str | None = None,
    ) -> str:
        """
        Write a checkpoint.

        Args:
            project_root: Project the session belongs to
            context: Context to persist
            token_usage: Token entries recorded so far
            session_id: Existing session to overwrite; a new id is
                allocated when None

        Returns:
            The session id
        """
        pass

    @abstractmethod
    def load(self, project_root: Path, session_id: str) -> "SessionSnapshot | None":
        """Load a checkpoint, or None if it is missing or unreadable."""
        pass

    @abstractmethod
    def list_sessions(self, project_root: Path) -> list["SessionSnapshot"]:
        """All sessions for the project, most recently updated first."""
        pass
