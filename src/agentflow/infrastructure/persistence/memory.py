"""
In-memory session store.

Useful for testing and ephemeral runs.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from agentflow.domain.interfaces import SessionStoreInterface
from agentflow.domain.models import SessionSnapshot, TokenUsageEntry, WorkflowContext
from agentflow.infrastructure.persistence.sessions import make_session_id


class InMemorySessionStore(SessionStoreInterface):
    """Simple in-memory session store for testing."""

    def __init__(self) -> None:
        self._sessions: dict[tuple[Path, str], SessionSnapshot] = {}
        self.save_count = 0

    def save(
        self,
        project_root: Path,
        context: WorkflowContext,
        token_usage: Sequence[TokenUsageEntry] = (),
        session_id: str | None = None,
    ) -> str:
        session_id = session_id or make_session_id(context.task)
        key = (Path(project_root), session_id)
        now = datetime.now(UTC).isoformat()
        existing = self._sessions.get(key)
        self._sessions[key] = SessionSnapshot(
            session_id=session_id,
            created_at=existing.created_at if existing else now,
            updated_at=now,
            context=context,
            token_usage=tuple(token_usage),
        )
        self.save_count += 1
        return session_id

    def load(self, project_root: Path, session_id: str) -> SessionSnapshot | None:
        return self._sessions.get((Path(project_root), session_id))

    def list_sessions(self, project_root: Path) -> list[SessionSnapshot]:
        root = Path(project_root)
        snapshots = [s for (r, _), s in self._sessions.items() if r == root]
        return sorted(snapshots, key=lambda s: s.updated_at, reverse=True)
