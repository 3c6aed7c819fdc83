"""
Interactive (human-in-the-loop) adapters.
"""

from agentflow.infrastructure.interactive.approval import (
    AutoApprovalPrompt,
    ConsoleApprovalPrompt,
)

__all__ = ["AutoApprovalPrompt", "ConsoleApprovalPrompt"]
