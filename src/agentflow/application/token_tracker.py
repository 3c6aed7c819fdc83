"""Per-run token accounting."""

from datetime import UTC, datetime

from agentflow.domain.models import AgentRole, TokenUsage, TokenUsageEntry

# USD per 1M tokens (input, output). Local models are free.
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1": (2.00, 8.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "claude-sonnet-4": (3.00, 15.00),
    "claude-haiku-3.5": (0.80, 4.00),
}


class TokenTracker:
    """Append-only log of token usage per agent call."""

    def __init__(self, entries: tuple[TokenUsageEntry, ...] = ()):
        self._entries: list[TokenUsageEntry] = list(entries)

    def record(self, role: AgentRole, model: str, usage: TokenUsage) -> TokenUsageEntry:
        entry = TokenUsageEntry(
            role=role,
            model=model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            timestamp=datetime.now(UTC).isoformat(),
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[TokenUsageEntry, ...]:
        return tuple(self._entries)

    def total_tokens(self) -> int:
        return sum(e.total_tokens for e in self._entries)

    def tokens_by_role(self) -> dict[AgentRole, int]:
        totals: dict[AgentRole, int] = {}
        for entry in self._entries:
            totals[entry.role] = totals.get(entry.role, 0) + entry.total_tokens
        return totals

    def estimate_cost(self) -> float:
        """Estimated spend in USD; unknown models count as free."""
        cost = 0.0
        for entry in self._entries:
            pricing = _price_for(entry.model)
            if pricing is None:
                continue
            input_rate, output_rate = pricing
            cost += entry.prompt_tokens / 1_000_000 * input_rate
            cost += entry.completion_tokens / 1_000_000 * output_rate
        return cost


def _price_for(model: str) -> tuple[float, float] | None:
    # Longest matching prefix, so "gpt-4o-mini-2024" prices as gpt-4o-mini
    matches = [name for name in MODEL_PRICING if model.startswith(name)]
    if not matches:
        return None
    return MODEL_PRICING[max(matches, key=len)]
