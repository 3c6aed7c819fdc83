"""
Model backends.
"""

from agentflow.infrastructure.llm.mock import MockBackend
from agentflow.infrastructure.llm.openai_compat import (
    OllamaBackend,
    OllamaBackendConfig,
    OpenAIBackend,
    OpenAIBackendConfig,
)

__all__ = [
    "MockBackend",
    "OpenAIBackend",
    "OpenAIBackendConfig",
    "OllamaBackend",
    "OllamaBackendConfig",
]
