"""
agentflow command line.

    agentflow run "Add a /health endpoint" --auto
    agentflow plan docs/PRD.md -o tasks.txt
    agentflow queue tasks.txt --stop-on-failure
    agentflow resume add-a-health-endpoint-1a2b3c4d
    agentflow sessions
    agentflow init
"""

import asyncio
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

import click

from agentflow import console as out
from agentflow.application.task_queue import parse_tasks
from agentflow.bootstrap import (
    WorkflowOutcome,
    execute_workflow,
    plan_tasks,
    resume_workflow,
    run_task_queue,
)
from agentflow.config import AppConfig, config_path, load_config, save_config
from agentflow.domain.exceptions import AppError, ConfigError
from agentflow.domain.models import TaskStatus, WorkflowState
from agentflow.infrastructure.context_loader import generate_default_prompts
from agentflow.infrastructure.persistence import FilesystemSessionStore
from agentflow.logging_setup import setup_logging

EXIT_FAILED = 1
EXIT_CONFIG = 2


def common_options[F: Callable[..., Any]](func: F) -> F:
    """
    Decorator adding common CLI options to a click command.

    Options added:
        --project: Project root (default: current directory)
        --log-file: Path to log file
        -v/--verbose: Enable verbose logging
    """

    @click.option(
        "--project",
        default=".",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help="Project root (default: current directory)",
    )
    @click.option(
        "--log-file",
        default=None,
        type=click.Path(),
        help="Path to log file",
    )
    @click.option(
        "-v",
        "--verbose",
        is_flag=True,
        help="Enable verbose (DEBUG) logging to console",
    )
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        setup_logging(verbose=kwargs.pop("verbose"), log_file=kwargs.pop("log_file"))
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _load(project: Path) -> AppConfig:
    try:
        return load_config(project)
    except ConfigError as e:
        out.print_error(str(e), hint=f"Fix or delete {config_path(project)}")
        raise SystemExit(EXIT_CONFIG) from None


def _report(outcome: WorkflowOutcome) -> None:
    out.print_workflow_summary(outcome.context, outcome.session_id)
    out.print_token_usage(outcome.token_usage)
    if outcome.context.state == WorkflowState.FAILED:
        raise SystemExit(EXIT_FAILED)


@click.group()
@click.version_option(package_name="agentflow")
def cli() -> None:
    """agentflow: role-based AI agents driven by a deterministic workflow."""


@cli.command()
@click.argument("task")
@click.option("--auto", is_flag=True, help="Skip human approval between steps")
@click.option(
    "--context",
    "context_paths",
    multiple=True,
    type=click.Path(),
    help="Reference document for agents (repeatable)",
)
@click.option("--stream", is_flag=True, help="Stream agent output to the terminal")
@common_options
def run(
    task: str, auto: bool, context_paths: tuple[str, ...], stream: bool, project: Path
) -> None:
    """Run one task through the full agent pipeline."""
    config = _load(project)
    out.print_header("agentflow", task)
    try:
        outcome = asyncio.run(
            execute_workflow(
                project,
                task,
                auto=auto,
                context_paths=context_paths,
                streaming=stream,
                config=config,
                on_chunk=out.print_chunk if stream else None,
            )
        )
    except AppError as e:
        out.print_error(str(e))
        raise SystemExit(EXIT_FAILED) from None
    _report(outcome)


@cli.command()
@click.argument("tasks_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--auto", is_flag=True, help="Skip human approval between steps")
@click.option("--stop-on-failure", is_flag=True, help="Skip remaining tasks after a failure")
@common_options
def queue(tasks_file: Path, auto: bool, stop_on_failure: bool, project: Path) -> None:
    """Run every task in TASKS_FILE (one per line), one after another."""
    config = _load(project)
    tasks = parse_tasks(tasks_file.read_text(encoding="utf-8"))
    if not tasks:
        out.print_error(f"No tasks found in {tasks_file}")
        raise SystemExit(EXIT_FAILED)

    out.print_header("agentflow queue", f"{len(tasks)} task(s)")
    results = asyncio.run(
        run_task_queue(project, tasks, auto=auto, stop_on_failure=stop_on_failure, config=config)
    )
    out.print_queue_summary(results)
    if any(item.status == TaskStatus.FAILED for item in results):
        raise SystemExit(EXIT_FAILED)


@cli.command()
@click.argument("docs", nargs=-1, required=True)
@click.option(
    "-o",
    "--output",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the task list to this file instead of stdout",
)
@click.option(
    "--context",
    "context_paths",
    multiple=True,
    type=click.Path(),
    help="Additional reference document (repeatable)",
)
@common_options
def plan(
    docs: tuple[str, ...], output: Path | None, context_paths: tuple[str, ...], project: Path
) -> None:
    """Break DOCS (PRDs, specs, ...) into a task list for `agentflow queue`."""
    config = _load(project)
    try:
        with out.console.status("Generating task breakdown..."):
            task_plan = asyncio.run(plan_tasks(project, docs, context_paths, config=config))
    except AppError as e:
        out.print_error(f"Plan failed: {e}")
        raise SystemExit(EXIT_FAILED) from None

    if not task_plan.tasks:
        out.print_error("The model returned no tasks")
        raise SystemExit(EXIT_FAILED)

    text = "\n".join(task_plan.tasks)
    if output is None:
        click.echo(text)
        return

    output.write_text(text + "\n", encoding="utf-8")
    out.console.print(f"[green]Task list written to {output}[/green]")
    out.console.print(
        f"{len(task_plan.tasks)} task(s) generated. "
        f"Run with: agentflow queue {output} --auto"
    )


@cli.command()
@click.argument("session_id")
@click.option("--auto", is_flag=True, help="Skip human approval between steps")
@common_options
def resume(session_id: str, auto: bool, project: Path) -> None:
    """Continue a checkpointed session."""
    config = _load(project)
    try:
        outcome = asyncio.run(resume_workflow(project, session_id, auto=auto, config=config))
    except AppError as e:
        out.print_error(str(e), hint="List sessions with: agentflow sessions")
        raise SystemExit(EXIT_FAILED) from None
    _report(outcome)


@cli.command()
@common_options
def sessions(project: Path) -> None:
    """List saved sessions, most recent first."""
    out.print_sessions(FilesystemSessionStore().list_sessions(project))


@cli.command()
@common_options
def init(project: Path) -> None:
    """Write a default config and editable prompt files into .agentflow/."""
    path = config_path(project)
    if path.exists():
        out.console.print(f"[dim]Keeping existing {path}[/dim]")
    else:
        save_config(project, AppConfig())
        out.console.print(f"Created {path}")
    for created in generate_default_prompts(project):
        out.console.print(f"Created {created}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
