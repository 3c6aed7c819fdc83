"""
Shared backend resources.

One BackendResources is built per process and handed to every backend, so
all of them share a single connection pool, response cache and context
optimizer.
"""

from dataclasses import dataclass, field

from agentflow.domain.models import BackendResponse
from agentflow.infrastructure.cache import ResponseCache
from agentflow.infrastructure.context_optimizer import ContextOptimizer
from agentflow.infrastructure.pool import ConnectionPool


@dataclass
class BackendResources:
    pool: ConnectionPool = field(default_factory=ConnectionPool)
    cache: ResponseCache[BackendResponse] = field(default_factory=ResponseCache)
    optimizer: ContextOptimizer = field(default_factory=ContextOptimizer)

    async def aclose(self) -> None:
        """Release pooled connections and drop cached responses."""
        await self.pool.aclose()
        self.cache.clear()
