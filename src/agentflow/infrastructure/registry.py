"""
Backend Registry with Entry Points Discovery.

Resolves provider names from configuration ("ollama", "openai", "mock") to
backend classes. External packages can add backends in their pyproject.toml:

    [project.entry-points."agentflow.backends"]
    anthropic = "mypackage.backends:AnthropicBackend"
"""

import warnings
from importlib.metadata import entry_points
from typing import Any

from agentflow.domain.interfaces import AgentBackendInterface
from agentflow.infrastructure.llm.mock import MockBackend
from agentflow.infrastructure.llm.openai_compat import OllamaBackend, OpenAIBackend

ENTRY_POINT_GROUP = "agentflow.backends"

BUILTIN_BACKENDS: dict[str, type[AgentBackendInterface]] = {
    "mock": MockBackend,
    "ollama": OllamaBackend,
    "openai": OpenAIBackend,
}


class BackendRegistry:
    """
    Registry for AgentBackendInterface implementations.

    Built-in backends are always available; others are discovered via the
    'agentflow.backends' entry point group. Entry points are only loaded
    on first access.

    Example usage:
        backend = BackendRegistry.create("ollama", resources=resources, timeout=120.0)
    """

    _backends: dict[str, type[AgentBackendInterface]] = {}
    _loaded: bool = False

    @classmethod
    def _load_entry_points(cls) -> None:
        """Load built-ins and entry points (lazy, called once)."""
        if cls._loaded:
            return

        for name, backend_class in BUILTIN_BACKENDS.items():
            cls._backends.setdefault(name, backend_class)

        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if ep.name in cls._backends:
                continue
            try:
                cls._backends[ep.name] = ep.load()
            except Exception as e:
                warnings.warn(
                    f"Failed to load backend '{ep.name}' from entry point: {e}",
                    stacklevel=2,
                )

        cls._loaded = True

    @classmethod
    def register(cls, name: str, backend_class: type[AgentBackendInterface]) -> None:
        """
        Manually register a backend class.

        Args:
            name: Provider identifier used in configuration
            backend_class: Class implementing AgentBackendInterface
        """
        cls._backends[name] = backend_class

    @classmethod
    def get(cls, name: str) -> type[AgentBackendInterface]:
        """
        Get a backend class by provider name.

        Raises:
            KeyError: If no backend is registered under that name
        """
        cls._load_entry_points()
        if name not in cls._backends:
            available = ", ".join(sorted(cls._backends)) or "(none)"
            raise KeyError(f"Backend '{name}' not found. Available backends: {available}")
        return cls._backends[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> AgentBackendInterface:
        """
        Create a backend instance by provider name.

        Raises:
            KeyError: If no backend is registered under that name
            TypeError: If config doesn't match the constructor signature
        """
        return cls.get(name)(**config)

    @classmethod
    def available(cls) -> list[str]:
        cls._load_entry_points()
        return sorted(cls._backends)

    @classmethod
    def clear(cls) -> None:
        """
        Clear all registered backends (useful for testing).

        Also resets the loaded flag so built-ins and entry points reload.
        """
        cls._backends.clear()
        cls._loaded = False
