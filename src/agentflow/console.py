"""Rich console output for the agentflow CLI."""

from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agentflow.application.task_queue import QueuedTask, summarize_queue
from agentflow.application.token_tracker import TokenTracker
from agentflow.domain.models import (
    SessionSnapshot,
    TaskStatus,
    TokenUsageEntry,
    WorkflowContext,
    WorkflowState,
)

# Shared console instances
console = Console()
error_console = Console(stderr=True)

_STATUS_STYLE = {
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.SKIPPED: "yellow",
    TaskStatus.PENDING: "dim",
    TaskStatus.RUNNING: "cyan",
}


def print_header(title: str, subtitle: str | None = None) -> None:
    """Print a styled header panel."""
    content = Text(title, style="bold blue")
    if subtitle:
        content.append(f"\n{subtitle}", style="dim")
    console.print(Panel(content, expand=False))


def print_error(message: str, hint: str | None = None) -> None:
    """Print formatted error message to stderr."""
    content = Text(f"ERROR: {message}", style="bold red")
    if hint:
        content.append(f"\n\nHint: {hint}", style="yellow")
    error_console.print(Panel(content, title="Error", border_style="red"))


def print_chunk(chunk: str) -> None:
    """Echo streamed agent output without a trailing newline."""
    console.print(chunk, end="", markup=False, highlight=False)


def print_workflow_summary(ctx: WorkflowContext, session_id: str | None = None) -> None:
    """Print the final state, files and transition history of a run."""
    succeeded = ctx.state in (WorkflowState.QA_APPROVED, WorkflowState.COMPLETE)
    style = "green" if succeeded else "red"

    info = Table(show_header=False, box=None)
    info.add_column("Key", style="cyan")
    info.add_column("Value")
    info.add_row("Task", ctx.task)
    info.add_row("Final state", Text(ctx.state.value, style=f"bold {style}"))
    info.add_row("Iterations", f"{ctx.iteration}/{ctx.max_iterations}")
    info.add_row("Files", ", ".join(ctx.generated_files) or "-")
    if session_id:
        info.add_row("Session", session_id)
    if ctx.error:
        info.add_row("Error", Text(ctx.error, style="red"))
    console.print(Panel(info, title="Workflow Summary", border_style=style))

    if ctx.history:
        history = Table(show_header=True, box=None)
        history.add_column("#", style="dim", width=4)
        history.add_column("Event", style="magenta")
        history.add_column("From")
        history.add_column("To")
        for i, record in enumerate(ctx.history, 1):
            history.add_row(str(i), record.event, record.from_state.value, record.to_state.value)
        console.print(history)


def print_token_usage(entries: Sequence[TokenUsageEntry]) -> None:
    """Print tokens per role and the estimated cost."""
    if not entries:
        return
    tracker = TokenTracker(tuple(entries))
    table = Table(title="Token Usage", show_header=True, box=None)
    table.add_column("Role", style="cyan")
    table.add_column("Tokens", justify="right")
    for role, tokens in tracker.tokens_by_role().items():
        table.add_row(role.label, f"{tokens:,}")
    table.add_row("Total", f"{tracker.total_tokens():,}", style="bold")
    console.print(table)
    cost = tracker.estimate_cost()
    if cost > 0:
        console.print(f"[dim]Estimated cost: ${cost:.4f}[/dim]")


def print_queue_summary(queue: Sequence[QueuedTask]) -> None:
    """Print one row per task plus totals per status."""
    table = Table(title="Task Queue", show_header=True, box=None)
    table.add_column("#", style="dim", width=4)
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Error", style="red")
    for i, item in enumerate(queue, 1):
        duration = f"{item.duration:.1f}s" if item.duration is not None else "-"
        table.add_row(
            str(i),
            item.task,
            Text(item.status.value, style=_STATUS_STYLE[item.status]),
            duration,
            item.error or "",
        )
    console.print(table)

    counts = summarize_queue(queue)
    totals = ", ".join(f"{status.value}: {n}" for status, n in counts.items() if n)
    console.print(f"[bold]{len(queue)} task(s)[/bold] ({totals})")


def print_sessions(sessions: Sequence[SessionSnapshot]) -> None:
    """Print saved sessions, most recent first."""
    if not sessions:
        console.print("[dim]No saved sessions.[/dim]")
        return
    table = Table(title="Sessions", show_header=True, box=None)
    table.add_column("ID", style="cyan")
    table.add_column("State")
    table.add_column("Updated")
    table.add_column("Task")
    for snapshot in sessions:
        table.add_row(
            snapshot.session_id,
            snapshot.context.state.value,
            snapshot.updated_at,
            snapshot.context.task[:60],
        )
    console.print(table)
