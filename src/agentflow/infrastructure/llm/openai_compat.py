"""
OpenAI-compatible model backends.

Talks to any endpoint that speaks the OpenAI chat completions API: OpenAI
itself, or local servers such as Ollama through their /v1 endpoint.
Requests go through the shared context optimizer, response cache and
connection pool, and are retried on transient failures.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace
from typing import Any

from agentflow.domain.exceptions import ProviderError
from agentflow.domain.interfaces import AgentBackendInterface
from agentflow.domain.models import (
    AgentRole,
    BackendResponse,
    ChatMessage,
    InvocationOptions,
    TokenUsage,
)
from agentflow.infrastructure.cache import generate_cache_key
from agentflow.infrastructure.concurrency import (
    OperationTimeoutError,
    with_retry,
    with_timeout,
)
from agentflow.infrastructure.resources import BackendResources

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_URL = "https://api.openai.com/v1"
DEFAULT_OLLAMA_URL = "http://localhost:11434/v1"


@dataclass
class OpenAIBackendConfig:
    """Configuration for OpenAIBackend.

    This typed config ensures unknown fields are rejected at construction time.
    """

    base_url: str = DEFAULT_OPENAI_URL
    api_key: str | None = None  # Falls back to OPENAI_API_KEY
    timeout: float = 300.0
    max_retries: int = 3  # Retries after the first attempt
    retry_delay: float = 1.0
    use_cache: bool = True


@dataclass
class OllamaBackendConfig(OpenAIBackendConfig):
    """Configuration for OllamaBackend."""

    base_url: str = DEFAULT_OLLAMA_URL
    api_key: str | None = "ollama"  # required but unused


class OpenAIBackend(AgentBackendInterface):
    """Chat-completions backend using the openai SDK."""

    config_class: type[OpenAIBackendConfig] = OpenAIBackendConfig
    supports_streaming = True

    def __init__(
        self,
        config: OpenAIBackendConfig | None = None,
        resources: BackendResources | None = None,
        client: Any = None,
        **kwargs: Any,
    ):
        """
        Args:
            config: Typed configuration object (preferred)
            resources: Shared pool, cache and optimizer
            client: Pre-built AsyncOpenAI-compatible client
            **kwargs: Config fields, used when config is None
        """
        if config is None:
            config = self.config_class(**kwargs)

        try:
            import openai
        except ImportError as err:
            raise ImportError("openai library required: pip install openai") from err

        self._config = config
        self._resources = resources or BackendResources()
        self._client = client or openai.AsyncOpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=0,  # retried here, through the pool
        )
        self._retryable: tuple[type[BaseException], ...] = (
            openai.APIConnectionError,
            openai.RateLimitError,
            openai.InternalServerError,
            OperationTimeoutError,
        )
        self._failures: tuple[type[BaseException], ...] = (
            openai.APIError,
            OperationTimeoutError,
        )

    @property
    def pool_key(self) -> str:
        return self._config.base_url

    def _messages(self, system_prompt: str, user_prompt: str) -> list[ChatMessage]:
        messages = []
        if system_prompt:
            messages.append(ChatMessage(role="system", content=system_prompt))
        messages.append(ChatMessage(role="user", content=user_prompt))
        return messages

    def _request(
        self,
        messages: tuple[ChatMessage, ...],
        options: InvocationOptions,
        stream: bool = False,
    ) -> Any:
        return self._client.chat.completions.create(
            model=options.model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            stream=stream,
        )

    def _provider_error(
        self, err: BaseException, role: AgentRole, options: InvocationOptions
    ) -> ProviderError:
        return ProviderError(
            f"{type(self).__name__} request failed: {err}",
            {
                "role": role.value,
                "model": options.model,
                "base_url": self._config.base_url,
            },
        )

    def _on_retry(self, attempt: int, err: BaseException) -> None:
        logger.info("Retrying %s (attempt %d): %s", self._config.base_url, attempt + 1, err)

    async def invoke(
        self,
        role: AgentRole,
        system_prompt: str,
        user_prompt: str,
        options: InvocationOptions,
    ) -> BackendResponse:
        """Run one completion through cache, optimizer, pool and retry."""
        messages = self._messages(system_prompt, user_prompt)
        cache_key = generate_cache_key(
            messages, options.model, options.temperature, options.max_tokens
        )
        if self._config.use_cache:
            cached = self._resources.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s", role.value)
                return replace(cached, cached=True)

        optimized = self._resources.optimizer.optimize(messages)
        token = await self._resources.pool.acquire(self.pool_key)
        try:
            completion = await with_retry(
                lambda: token.run(
                    with_timeout(
                        lambda: self._request(optimized.messages, options),
                        self._config.timeout,
                    )
                ),
                max_attempts=self._config.max_retries + 1,
                delay=self._config.retry_delay,
                on_retry=self._on_retry,
                retry_on=self._retryable,
            )
        except ProviderError:
            raise
        except self._failures as err:
            raise self._provider_error(err, role, options) from err
        finally:
            self._resources.pool.release(self.pool_key, token)

        response = self._to_response(completion, options)
        if self._config.use_cache:
            self._resources.cache.set(cache_key, response)
        return response

    def _to_response(self, completion: Any, options: InvocationOptions) -> BackendResponse:
        content = completion.choices[0].message.content or ""
        usage = completion.usage
        if usage is not None:
            token_usage = TokenUsage(
                prompt_tokens=usage.prompt_tokens or 0,
                completion_tokens=usage.completion_tokens or 0,
                total_tokens=usage.total_tokens or 0,
            )
        else:
            estimated = len(content) // 4
            token_usage = TokenUsage(completion_tokens=estimated, total_tokens=estimated)
        return BackendResponse(
            content=content,
            model=completion.model or options.model,
            usage=token_usage,
        )

    async def stream(
        self,
        role: AgentRole,
        system_prompt: str,
        user_prompt: str,
        options: InvocationOptions,
    ) -> AsyncIterator[str]:
        """
        Yield content deltas as the server produces them.

        One deadline of config.timeout seconds covers opening the stream
        and every read from it.
        """
        optimized = self._resources.optimizer.optimize(
            self._messages(system_prompt, user_prompt)
        )
        deadline = asyncio.get_running_loop().time() + self._config.timeout
        token = await self._resources.pool.acquire(self.pool_key)
        try:
            async with asyncio.timeout_at(deadline):
                chunks = await token.run(
                    self._request(optimized.messages, options, stream=True)
                )
            iterator = aiter(chunks)
            while True:
                async with asyncio.timeout_at(deadline):
                    chunk = await anext(iterator, None)
                if chunk is None:
                    break
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except ProviderError:
            raise
        except TimeoutError as err:
            timeout = OperationTimeoutError(self._config.timeout)
            raise self._provider_error(timeout, role, options) from err
        except self._failures as err:
            raise self._provider_error(err, role, options) from err
        finally:
            self._resources.pool.release(self.pool_key, token)


class OllamaBackend(OpenAIBackend):
    """Connects to an Ollama instance through its OpenAI-compatible API."""

    config_class = OllamaBackendConfig
