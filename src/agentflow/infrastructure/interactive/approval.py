"""
Human approval gate.

Pauses the workflow after each agent step and asks a human whether to
accept the output, re-run the agent, or abort the workflow.
"""

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from agentflow.domain.interfaces import ApprovalInterface
from agentflow.domain.models import AgentRole, ApprovalDecision, WorkflowContext

PREVIEW_LIMIT = 500


def format_preview(content: str, limit: int = PREVIEW_LIMIT) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + f"\n... ({len(content) - limit} more characters)"


class ConsoleApprovalPrompt(ApprovalInterface):
    """
    Asks on the terminal with rich prompts.

    The blocking prompt runs in a worker thread so the event loop stays
    responsive. An empty answer or end of input counts as abort.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def _ask_blocking(self, ctx: WorkflowContext, role: AgentRole, preview: str) -> ApprovalDecision:
        self.console.print(
            Panel(
                format_preview(preview),
                title=f"[bold yellow]{role.label} output[/bold yellow]",
                subtitle=(
                    f"State: {ctx.state.value} | "
                    f"Iteration: {ctx.iteration}/{ctx.max_iterations}"
                ),
            )
        )
        try:
            answer = Prompt.ask(
                "[bold]Accept this output?[/bold]",
                choices=[d.value for d in ApprovalDecision],
                default=ApprovalDecision.APPROVE.value,
                console=self.console,
            )
        except EOFError:
            return ApprovalDecision.ABORT
        return ApprovalDecision(answer) if answer else ApprovalDecision.ABORT

    async def ask(
        self, ctx: WorkflowContext, role: AgentRole, preview: str
    ) -> ApprovalDecision:
        return await asyncio.to_thread(self._ask_blocking, ctx, role, preview)


class AutoApprovalPrompt(ApprovalInterface):
    """Approves everything. For unattended runs and tests."""

    def __init__(self, decision: ApprovalDecision = ApprovalDecision.APPROVE):
        self.decision = decision
        self.asked = 0

    async def ask(
        self, ctx: WorkflowContext, role: AgentRole, preview: str
    ) -> ApprovalDecision:
        self.asked += 1
        return self.decision
