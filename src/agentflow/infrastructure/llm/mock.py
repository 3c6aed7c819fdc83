"""
Mock backend for testing without a model server.

Returns predefined responses in sequence, either from one shared list or
from a list per role.
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from agentflow.domain.exceptions import ProviderError
from agentflow.domain.interfaces import AgentBackendInterface
from agentflow.domain.models import (
    AgentRole,
    BackendResponse,
    InvocationOptions,
    TokenUsage,
)


@dataclass(frozen=True)
class MockCall:
    role: AgentRole
    system_prompt: str
    user_prompt: str
    options: InvocationOptions


class MockBackend(AgentBackendInterface):
    """Returns predefined responses for testing."""

    supports_streaming = True

    def __init__(
        self,
        responses: Sequence[str] | Mapping[AgentRole, Sequence[str]] = (),
        streaming: bool = True,
        **_settings: Any,
    ):
        """
        Args:
            responses: Responses returned in sequence, or a sequence per role
            streaming: Whether to advertise streaming support
            **_settings: Provider settings (base_url, timeout, ...), ignored so
                the mock can stand in for any configured provider
        """
        if isinstance(responses, Mapping):
            self._by_role = {AgentRole(k): list(v) for k, v in responses.items()}
            self._shared: list[str] | None = None
        else:
            self._by_role = {}
            self._shared = list(responses)
        self._positions: dict[AgentRole | None, int] = {}
        self.supports_streaming = streaming
        self.calls: list[MockCall] = []

    def _next(self, role: AgentRole) -> str:
        key: AgentRole | None = None if self._shared is not None else role
        queue = self._shared if self._shared is not None else self._by_role.get(role, [])
        position = self._positions.get(key, 0)
        if position >= len(queue):
            raise ProviderError(
                "MockBackend exhausted responses",
                {"role": role.value, "model": "mock"},
            )
        self._positions[key] = position + 1
        return queue[position]

    async def invoke(
        self,
        role: AgentRole,
        system_prompt: str,
        user_prompt: str,
        options: InvocationOptions,
    ) -> BackendResponse:
        """Return the next predefined response."""
        self.calls.append(MockCall(role, system_prompt, user_prompt, options))
        content = self._next(role)
        prompt_tokens = (len(system_prompt) + len(user_prompt)) // 4
        completion_tokens = len(content) // 4
        return BackendResponse(
            content=content,
            model=options.model,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def stream(
        self,
        role: AgentRole,
        system_prompt: str,
        user_prompt: str,
        options: InvocationOptions,
    ) -> AsyncIterator[str]:
        """Yield the next predefined response word by word."""
        self.calls.append(MockCall(role, system_prompt, user_prompt, options))
        content = self._next(role)
        for word in content.split(" ")[:-1]:
            yield word + " "
        yield content.split(" ")[-1]

    @property
    def call_count(self) -> int:
        """Number of invoke() / stream() calls made."""
        return len(self.calls)

    def reset(self) -> None:
        """Rewind every response queue and forget recorded calls."""
        self._positions.clear()
        self.calls.clear()
