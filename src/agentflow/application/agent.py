"""
Agent: one role bound to a model backend.

Stateless apart from its configuration. The runner decides which agent
acts and what its output means; the agent only turns an AgentInput into
an AgentOutput.
"""

import logging
import math
from collections.abc import Callable

from agentflow.domain.exceptions import ProviderError
from agentflow.domain.interfaces import AgentBackendInterface
from agentflow.domain.models import (
    AgentInput,
    AgentOutput,
    AgentRole,
    InvocationOptions,
    TokenUsage,
)
from agentflow.domain.prompts import AgentPrompt, default_prompt

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]


class Agent:
    """
    Executes a single role against a backend.

    Any failure other than ProviderError is wrapped in ProviderError
    carrying the role and model, so callers only handle one error kind.
    """

    def __init__(
        self,
        role: AgentRole,
        backend: AgentBackendInterface,
        options: InvocationOptions,
        prompt: AgentPrompt | None = None,
    ):
        """
        Args:
            role: Role this agent plays
            backend: Model backend to call
            options: Model name, temperature and max tokens
            prompt: Role instructions (defaults to the built-in prompt)
        """
        self._role = role
        self._backend = backend
        self._options = options
        self._prompt = prompt or default_prompt(role)

    @property
    def role(self) -> AgentRole:
        return self._role

    @property
    def options(self) -> InvocationOptions:
        return self._options

    @property
    def supports_streaming(self) -> bool:
        return self._backend.supports_streaming

    def _wrap(self, err: Exception) -> ProviderError:
        return ProviderError(
            f"{self._role.label} agent failed: {err}",
            {"role": self._role.value, "model": self._options.model},
        )

    async def execute(self, agent_input: AgentInput) -> AgentOutput:
        """
        Run one step.

        Raises:
            ProviderError: If the backend call fails
        """
        logger.debug("%s invoking %s", self._role.label, self._options.model)
        try:
            response = await self._backend.invoke(
                self._role,
                self._prompt.instructions,
                self._prompt.render(agent_input),
                self._options,
            )
        except ProviderError:
            raise
        except Exception as err:
            raise self._wrap(err) from err

        return AgentOutput(
            role=self._role,
            content=response.content,
            model=response.model,
            tokens_used=response.usage.total_tokens,
            usage=response.usage,
        )

    async def execute_streaming(
        self, agent_input: AgentInput, on_chunk: ChunkCallback | None = None
    ) -> AgentOutput:
        """
        Run one step, forwarding output chunks as they arrive.

        Falls back to execute() when the backend cannot stream. Token usage
        is estimated from the output length since streams rarely report it.
        """
        if not self._backend.supports_streaming:
            return await self.execute(agent_input)

        chunks: list[str] = []
        try:
            async for chunk in self._backend.stream(
                self._role,
                self._prompt.instructions,
                self._prompt.render(agent_input),
                self._options,
            ):
                chunks.append(chunk)
                if on_chunk is not None:
                    on_chunk(chunk)
        except ProviderError:
            raise
        except Exception as err:
            raise self._wrap(err) from err

        content = "".join(chunks)
        estimated = math.ceil(len(content) / 4)
        return AgentOutput(
            role=self._role,
            content=content,
            model=self._options.model,
            tokens_used=estimated,
            usage=TokenUsage(completion_tokens=estimated, total_tokens=estimated),
        )
