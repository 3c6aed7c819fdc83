"""
Context window optimizer.

Fits a chat history into a token budget: system messages and the most
recent messages are kept, and the remaining budget is filled with the
highest-scoring older messages, restored to chronological order.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from agentflow.domain.models import ChatMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageScore:
    index: int
    score: float
    tokens: int


@dataclass(frozen=True)
class OptimizedContext:
    messages: tuple[ChatMessage, ...]
    token_count: int
    messages_removed: int


class ContextOptimizer:
    """Token-budgeted message selection with importance scoring."""

    def __init__(
        self,
        max_tokens: int = 100_000,
        min_recent_tokens: int = 20_000,
        keep_system_messages: bool = True,
        tokens_per_char: float = 0.25,
        message_overhead: int = 10,
    ):
        """
        Args:
            max_tokens: Budget for the whole history
            min_recent_tokens: Budget reserved for the most recent messages
            keep_system_messages: Always keep system messages
            tokens_per_char: Token estimate per character of content
            message_overhead: Fixed token cost per message
        """
        self.max_tokens = max_tokens
        self.min_recent_tokens = min_recent_tokens
        self.keep_system_messages = keep_system_messages
        self.tokens_per_char = tokens_per_char
        self.message_overhead = message_overhead

    def estimate_tokens(self, message: ChatMessage) -> int:
        return self.message_overhead + math.ceil(len(message.content) * self.tokens_per_char)

    def count_tokens(self, messages: Sequence[ChatMessage]) -> int:
        return sum(self.estimate_tokens(m) for m in messages)

    def truncate_to_tokens(
        self, messages: Sequence[ChatMessage], budget: int
    ) -> list[ChatMessage]:
        """Longest prefix of messages that fits the budget."""
        kept: list[ChatMessage] = []
        used = 0
        for message in messages:
            tokens = self.estimate_tokens(message)
            if used + tokens > budget:
                break
            kept.append(message)
            used += tokens
        return kept

    def _score(self, message: ChatMessage, index: int, total: int) -> float:
        score = 0.0
        if message.role == "system":
            score += 100
        elif message.role == "assistant" and "error" in message.content.lower():
            score += 80
        elif message.role == "user" and len(message.content) > 500:
            score += 70
        score += (index + 1) / total * 50
        score += min(len(message.content) / 1000, 1) * 20
        return score

    def optimize(self, messages: Sequence[ChatMessage]) -> OptimizedContext:
        """
        Select messages that fit max_tokens.

        Returns the input unchanged when it already fits. If the system
        messages alone exhaust the budget, only the first system message
        is kept.
        """
        total_tokens = self.count_tokens(messages)
        if total_tokens <= self.max_tokens:
            return OptimizedContext(tuple(messages), total_tokens, 0)

        if self.keep_system_messages:
            system = [m for m in messages if m.role == "system"]
            others = [m for m in messages if m.role != "system"]
        else:
            system, others = [], list(messages)

        system_tokens = self.count_tokens(system)
        available = self.max_tokens - system_tokens
        if available <= 0:
            kept = tuple(system[:1])
            logger.warning("System messages exceed the context budget; keeping one")
            return OptimizedContext(kept, self.count_tokens(kept), len(messages) - len(kept))

        # Most recent messages, newest first, within the reserved window
        recent_budget = min(self.min_recent_tokens, available)
        recent_tokens = 0
        recent_start = len(others)
        for index in range(len(others) - 1, -1, -1):
            tokens = self.estimate_tokens(others[index])
            if recent_tokens + tokens > recent_budget:
                break
            recent_tokens += tokens
            recent_start = index

        scores = sorted(
            (
                MessageScore(
                    index=i,
                    score=self._score(others[i], i, len(others)),
                    tokens=self.estimate_tokens(others[i]),
                )
                for i in range(recent_start)
            ),
            key=lambda s: s.score,
            reverse=True,
        )

        remaining = available - recent_tokens
        selected: list[int] = []
        for scored in scores:
            if scored.tokens <= remaining:
                selected.append(scored.index)
                remaining -= scored.tokens

        important = [others[i] for i in sorted(selected)]
        result = tuple(system + important + others[recent_start:])
        token_count = self.count_tokens(result)
        removed = len(messages) - len(result)
        logger.debug(
            "Context optimized: %d -> %d tokens, %d message(s) removed",
            total_tokens,
            token_count,
            removed,
        )
        return OptimizedContext(result, token_count, removed)
