"""
Infrastructure layer for agentflow.

Contains adapters for external concerns (model backends, persistence,
filesystem, subprocesses, terminal prompts) and the shared resource
primitives backends are built on (pool, cache, optimizer, concurrency).
"""

from agentflow.infrastructure.cache import ResponseCache, generate_cache_key
from agentflow.infrastructure.context_optimizer import ContextOptimizer
from agentflow.infrastructure.files import FilesystemFileWriter, parse_files
from agentflow.infrastructure.interactive import (
    AutoApprovalPrompt,
    ConsoleApprovalPrompt,
)
from agentflow.infrastructure.llm import (
    MockBackend,
    OllamaBackend,
    OpenAIBackend,
)
from agentflow.infrastructure.persistence import (
    FilesystemSessionStore,
    InMemorySessionStore,
)
from agentflow.infrastructure.pool import CancellationToken, ConnectionPool
from agentflow.infrastructure.registry import BackendRegistry
from agentflow.infrastructure.resources import BackendResources
from agentflow.infrastructure.test_runner import CommandTestRunner

__all__ = [
    # Resources
    "ConnectionPool",
    "CancellationToken",
    "ResponseCache",
    "generate_cache_key",
    "ContextOptimizer",
    "BackendResources",
    # Backends
    "MockBackend",
    "OpenAIBackend",
    "OllamaBackend",
    "BackendRegistry",
    # Persistence
    "FilesystemSessionStore",
    "InMemorySessionStore",
    # Project I/O
    "FilesystemFileWriter",
    "parse_files",
    "CommandTestRunner",
    "ConsoleApprovalPrompt",
    "AutoApprovalPrompt",
]
