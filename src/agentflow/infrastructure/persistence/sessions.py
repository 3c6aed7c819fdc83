"""
Filesystem session store.

Each session is one JSON document at
<project_root>/.agentflow/sessions/<session_id>.json holding the workflow
context and the token usage recorded so far. Documents are replaced
atomically, so a crash mid-write leaves the previous checkpoint intact.
"""

import json
import logging
import re
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from agentflow.domain.exceptions import ValidationError
from agentflow.domain.interfaces import SessionStoreInterface
from agentflow.domain.models import (
    AgentRole,
    SessionSnapshot,
    TokenUsageEntry,
    TransitionRecord,
    WorkflowContext,
    WorkflowState,
)

logger = logging.getLogger(__name__)

CONFIG_DIR = ".agentflow"
SESSIONS_DIR = "sessions"
_SESSION_ID = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def _now() -> str:
    return datetime.now(UTC).isoformat()


def make_session_id(task: str) -> str:
    """Readable, unique id: a slug of the task plus a random suffix."""
    slug = re.sub(r"[^a-z0-9]+", "-", task.lower()).strip("-")[:30].strip("-")
    return f"{slug or 'session'}-{uuid.uuid4().hex[:8]}"


# =============================================================================
# SERIALIZATION
# =============================================================================


def context_to_dict(ctx: WorkflowContext) -> dict[str, Any]:
    """Serialize a workflow context to a JSON-compatible dict."""
    return {
        "task": ctx.task,
        "state": ctx.state.value,
        "iteration": ctx.iteration,
        "max_iterations": ctx.max_iterations,
        "spec": ctx.spec,
        "plan": ctx.plan,
        "review_feedback": ctx.review_feedback,
        "test_failures": ctx.test_failures,
        "qa_feedback": ctx.qa_feedback,
        "error": ctx.error,
        "generated_files": list(ctx.generated_files),
        "history": [
            {
                "from": record.from_state.value,
                "to": record.to_state.value,
                "event": record.event,
                "timestamp": record.timestamp,
            }
            for record in ctx.history
        ],
    }


def dict_to_context(data: dict[str, Any]) -> WorkflowContext:
    """Deserialize a workflow context from a JSON dict."""
    return WorkflowContext(
        task=data["task"],
        state=WorkflowState(data["state"]),
        iteration=data["iteration"],
        max_iterations=data["max_iterations"],
        spec=data.get("spec"),
        plan=data.get("plan"),
        review_feedback=data.get("review_feedback"),
        test_failures=data.get("test_failures"),
        qa_feedback=data.get("qa_feedback"),
        error=data.get("error"),
        # Deserialize list → tuple for immutability
        generated_files=tuple(data.get("generated_files", [])),
        history=tuple(
            TransitionRecord(
                from_state=WorkflowState(record["from"]),
                to_state=WorkflowState(record["to"]),
                event=record["event"],
                timestamp=record["timestamp"],
            )
            for record in data.get("history", [])
        ),
    )


def _usage_to_dict(entry: TokenUsageEntry) -> dict[str, Any]:
    return {
        "role": entry.role.value,
        "model": entry.model,
        "prompt_tokens": entry.prompt_tokens,
        "completion_tokens": entry.completion_tokens,
        "total_tokens": entry.total_tokens,
        "timestamp": entry.timestamp,
    }


def _dict_to_usage(data: dict[str, Any]) -> TokenUsageEntry:
    return TokenUsageEntry(
        role=AgentRole(data["role"]),
        model=data["model"],
        prompt_tokens=data["prompt_tokens"],
        completion_tokens=data["completion_tokens"],
        total_tokens=data["total_tokens"],
        timestamp=data["timestamp"],
    )


def _dict_to_snapshot(data: dict[str, Any]) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=data["id"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        context=dict_to_context(data["context"]),
        token_usage=tuple(_dict_to_usage(u) for u in data.get("token_usage", [])),
    )


# =============================================================================
# STORE
# =============================================================================


class FilesystemSessionStore(SessionStoreInterface):
    """One JSON document per session under the project's config directory."""

    def __init__(self, config_dir: str = CONFIG_DIR):
        self._config_dir = config_dir

    def sessions_dir(self, project_root: Path) -> Path:
        return Path(project_root) / self._config_dir / SESSIONS_DIR

    def _path(self, project_root: Path, session_id: str) -> Path:
        if not _SESSION_ID.match(session_id):
            raise ValidationError(
                f"Invalid session id: {session_id!r}", {"session_id": session_id}
            )
        return self.sessions_dir(project_root) / f"{session_id}.json"

    def _read(self, path: Path) -> dict[str, Any] | None:
        try:
            with open(path, encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)
                return data
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as err:
            logger.warning("Could not read session %s: %s", path.name, err)
            return None

    def save(
        self,
        project_root: Path,
        context: WorkflowContext,
        token_usage: Sequence[TokenUsageEntry] = (),
        session_id: str | None = None,
    ) -> str:
        session_id = session_id or make_session_id(context.task)
        path = self._path(project_root, session_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        now = _now()
        existing = self._read(path)
        document = {
            "id": session_id,
            "created_at": existing.get("created_at", now) if existing else now,
            "updated_at": now,
            "context": context_to_dict(context),
            "token_usage": [_usage_to_dict(entry) for entry in token_usage],
        }

        # Atomic replace: write to temp + rename
        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        temp_path.replace(path)
        logger.debug("Saved session %s (%s)", session_id, context.state.value)
        return session_id

    def load(self, project_root: Path, session_id: str) -> SessionSnapshot | None:
        data = self._read(self._path(project_root, session_id))
        if data is None:
            return None
        try:
            return _dict_to_snapshot(data)
        except (KeyError, TypeError, ValueError) as err:
            logger.warning("Corrupt session %s: %s", session_id, err)
            return None

    def list_sessions(self, project_root: Path) -> list[SessionSnapshot]:
        directory = self.sessions_dir(project_root)
        if not directory.is_dir():
            return []

        snapshots = []
        for path in directory.glob("*.json"):
            if not _SESSION_ID.match(path.stem):
                continue
            snapshot = self.load(project_root, path.stem)
            if snapshot is not None:
                snapshots.append(snapshot)
        return sorted(snapshots, key=lambda s: s.updated_at, reverse=True)
