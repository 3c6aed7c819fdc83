"""
Persistence adapters for workflow sessions.
"""

from agentflow.infrastructure.persistence.memory import InMemorySessionStore
from agentflow.infrastructure.persistence.sessions import (
    FilesystemSessionStore,
    context_to_dict,
    dict_to_context,
)

__all__ = [
    "InMemorySessionStore",
    "FilesystemSessionStore",
    "context_to_dict",
    "dict_to_context",
]
