"""Tests for TokenTracker."""

import pytest

from agentflow.application.token_tracker import TokenTracker
from agentflow.domain.models import AgentRole, TokenUsage


def usage(prompt: int, completion: int) -> TokenUsage:
    return TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
    )


class TestTokenTracker:
    """Tests for recording and summarising token usage."""

    def test_record_appends_entry(self) -> None:
        """record() returns the stored entry."""
        tracker = TokenTracker()

        entry = tracker.record(AgentRole.CODER, "llama3", usage(10, 5))

        assert tracker.entries == (entry,)
        assert entry.total_tokens == 15
        assert entry.timestamp

    def test_totals_and_by_role(self) -> None:
        """Totals sum across entries and group by role."""
        tracker = TokenTracker()
        tracker.record(AgentRole.CODER, "m", usage(10, 5))
        tracker.record(AgentRole.CODER, "m", usage(1, 1))
        tracker.record(AgentRole.JUDGE, "m", usage(3, 0))

        assert tracker.total_tokens() == 20
        assert tracker.tokens_by_role() == {AgentRole.CODER: 17, AgentRole.JUDGE: 3}

    def test_seeded_entries_are_kept(self) -> None:
        """A tracker resumed from stored entries keeps appending to them."""
        first = TokenTracker()
        first.record(AgentRole.ARCHITECT, "m", usage(2, 2))

        resumed = TokenTracker(first.entries)
        resumed.record(AgentRole.CODER, "m", usage(1, 1))

        assert len(resumed.entries) == 2
        assert len(first.entries) == 1

    def test_cost_uses_longest_prefix(self) -> None:
        """Dated model names price as their most specific family."""
        tracker = TokenTracker()
        tracker.record(AgentRole.CODER, "gpt-4o-mini-2024-07-18", usage(1_000_000, 1_000_000))

        assert tracker.estimate_cost() == pytest.approx(0.75)

    def test_unknown_models_are_free(self) -> None:
        """Local models add nothing to the estimate."""
        tracker = TokenTracker()
        tracker.record(AgentRole.CODER, "llama3.2:latest", usage(5000, 5000))

        assert tracker.estimate_cost() == 0.0
