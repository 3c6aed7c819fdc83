"""
Domain exceptions for agentflow.

Every error raised by the library derives from AppError and carries a
stable machine-readable code plus a structured context dict, so callers
can log or branch on failures without parsing messages.
"""

from typing import Any


class AppError(Exception):
    """
    Base error for the whole library.

    Attributes:
        code: Stable identifier for the error kind (e.g. "WORKFLOW_ERROR")
        context: Structured details useful for logging
    """

    code: str = "APP_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        """
        Args:
            message: Human-readable error message
            context: Optional structured details about the failure
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        return self.message


class ConfigError(AppError):
    """Raised when configuration cannot be loaded or is invalid."""

    code = "CONFIG_ERROR"


class ProviderError(AppError):
    """
    Raised when a model backend call fails.

    Covers transport failures, timeouts, rejected requests and any
    unexpected exception raised while invoking an agent's backend.
    """

    code = "PROVIDER_ERROR"


class GitError(AppError):
    """Raised when a version-control operation fails."""

    code = "GIT_ERROR"


class WorkflowError(AppError):
    """
    Raised on an illegal state-machine transition.

    Either the event is not valid for the current state, or applying it
    would take the iteration counter past the configured maximum.
    """

    code = "WORKFLOW_ERROR"


class ValidationError(AppError):
    """Raised when input to a domain operation is malformed."""

    code = "VALIDATION_ERROR"
