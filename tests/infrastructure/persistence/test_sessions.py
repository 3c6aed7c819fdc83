"""Tests for session persistence."""

import json
import re
from pathlib import Path

import pytest

from agentflow.domain.events import CodeGenerated, PlanApproved, SpecReady
from agentflow.domain.exceptions import ValidationError
from agentflow.domain.models import (
    AgentRole,
    TokenUsageEntry,
    WorkflowContext,
    WorkflowState,
)
from agentflow.domain.workflow import transition
from agentflow.infrastructure.persistence.memory import InMemorySessionStore
from agentflow.infrastructure.persistence.sessions import (
    FilesystemSessionStore,
    context_to_dict,
    dict_to_context,
    make_session_id,
)


@pytest.fixture
def store() -> FilesystemSessionStore:
    return FilesystemSessionStore()


@pytest.fixture
def progressed(sample_context: WorkflowContext) -> WorkflowContext:
    ctx = transition(sample_context, SpecReady(spec="S"))
    ctx = transition(ctx, PlanApproved(plan="P"))
    return transition(ctx, CodeGenerated(files=("a.py", "b.py")))


@pytest.fixture
def usage() -> tuple[TokenUsageEntry, ...]:
    return (
        TokenUsageEntry(
            role=AgentRole.ARCHITECT,
            model="llama3",
            prompt_tokens=10,
            completion_tokens=20,
            total_tokens=30,
            timestamp="2026-01-01T00:00:00+00:00",
        ),
    )


class TestMakeSessionId:
    """Tests for make_session_id()."""

    def test_slug_and_suffix(self) -> None:
        """Ids are a lowercase slug of the task plus eight hex characters."""
        session_id = make_session_id("Add a /health endpoint!")

        assert re.fullmatch(r"add-a-health-endpoint-[0-9a-f]{8}", session_id)

    def test_long_task_truncated(self) -> None:
        """The slug part is at most 30 characters."""
        session_id = make_session_id("x" * 100)

        assert len(session_id) == 30 + 1 + 8

    def test_unsluggable_task(self) -> None:
        """Tasks without ASCII letters or digits fall back to 'session'."""
        assert make_session_id("¿¡!").startswith("session-")

    def test_unique(self) -> None:
        """Same task, different ids."""
        assert make_session_id("t") != make_session_id("t")


class TestSerialization:
    """Tests for context_to_dict() / dict_to_context()."""

    def test_history_keys(self, progressed: WorkflowContext) -> None:
        """History records use from/to/event/timestamp keys."""
        data = context_to_dict(progressed)

        assert data["history"][0]["from"] == "idle"
        assert data["history"][0]["to"] == "spec_created"
        assert data["history"][0]["event"] == "SPEC_READY"
        assert data["generated_files"] == ["a.py", "b.py"]

    def test_restores_equal_context(self, progressed: WorkflowContext) -> None:
        """A context survives a trip through JSON unchanged."""
        data = json.loads(json.dumps(context_to_dict(progressed)))

        assert dict_to_context(data) == progressed


class TestFilesystemSessionStore:
    """Tests for FilesystemSessionStore."""

    def test_save_and_load(
        self,
        tmp_path: Path,
        store: FilesystemSessionStore,
        progressed: WorkflowContext,
        usage: tuple[TokenUsageEntry, ...],
    ) -> None:
        """Saved context and token usage load back."""
        session_id = store.save(tmp_path, progressed, usage)

        snapshot = store.load(tmp_path, session_id)

        assert snapshot is not None
        assert snapshot.session_id == session_id
        assert snapshot.context == progressed
        assert snapshot.token_usage == usage
        assert (tmp_path / ".agentflow/sessions" / f"{session_id}.json").is_file()

    def test_resave_keeps_created_at(
        self, tmp_path: Path, store: FilesystemSessionStore, progressed: WorkflowContext
    ) -> None:
        """Later checkpoints update the document but not its creation time."""
        session_id = store.save(tmp_path, progressed)
        first = store.load(tmp_path, session_id)
        failed = WorkflowContext(task=progressed.task, state=WorkflowState.FAILED)

        store.save(tmp_path, failed, session_id=session_id)
        second = store.load(tmp_path, session_id)

        assert first is not None and second is not None
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert second.context.state == WorkflowState.FAILED

    def test_no_temp_file_left(
        self, tmp_path: Path, store: FilesystemSessionStore, progressed: WorkflowContext
    ) -> None:
        """Atomic writes leave only the final document."""
        store.save(tmp_path, progressed)

        files = list(store.sessions_dir(tmp_path).iterdir())

        assert len(files) == 1
        assert files[0].suffix == ".json"

    def test_missing_session(self, tmp_path: Path, store: FilesystemSessionStore) -> None:
        """Unknown ids load as None."""
        assert store.load(tmp_path, "missing-12345678") is None

    @pytest.mark.parametrize("session_id", ["../escape", "UPPER", "", "a/b"])
    def test_invalid_id_rejected(
        self, tmp_path: Path, store: FilesystemSessionStore, session_id: str
    ) -> None:
        """Ids that could escape the sessions directory are rejected."""
        with pytest.raises(ValidationError):
            store.load(tmp_path, session_id)

    def test_corrupt_document(
        self, tmp_path: Path, store: FilesystemSessionStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Unparseable or incomplete documents load as None with a warning."""
        directory = store.sessions_dir(tmp_path)
        directory.mkdir(parents=True)
        (directory / "broken-1.json").write_text("{not json", encoding="utf-8")
        (directory / "partial-1.json").write_text('{"id": "partial-1"}', encoding="utf-8")

        assert store.load(tmp_path, "broken-1") is None
        assert store.load(tmp_path, "partial-1") is None
        assert "Corrupt session partial-1" in caplog.text

    def test_list_sessions_newest_first(
        self, tmp_path: Path, store: FilesystemSessionStore, progressed: WorkflowContext
    ) -> None:
        """Listing skips unreadable files and sorts by last update."""
        older = store.save(tmp_path, progressed)
        newer = store.save(tmp_path, progressed)
        store.save(tmp_path, progressed, session_id=older)
        (store.sessions_dir(tmp_path) / "garbage-1.json").write_text("[", encoding="utf-8")
        (store.sessions_dir(tmp_path) / "Not An Id.json").write_text("{}", encoding="utf-8")

        sessions = store.list_sessions(tmp_path)

        assert [s.session_id for s in sessions] == [older, newer]

    def test_list_without_sessions_dir(
        self, tmp_path: Path, store: FilesystemSessionStore
    ) -> None:
        """A project never run has no sessions."""
        assert store.list_sessions(tmp_path) == []


class TestInMemorySessionStore:
    """Tests for InMemorySessionStore."""

    def test_save_load_list(self, progressed: WorkflowContext) -> None:
        """Sessions are kept per project root."""
        store = InMemorySessionStore()

        session_id = store.save(Path("/a"), progressed)
        store.save(Path("/b"), progressed)

        snapshot = store.load(Path("/a"), session_id)
        assert snapshot is not None
        assert snapshot.context == progressed
        assert len(store.list_sessions(Path("/a"))) == 1
        assert store.load(Path("/b"), session_id) is None
        assert store.save_count == 2
