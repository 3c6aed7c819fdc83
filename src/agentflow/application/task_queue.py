"""
Batch execution of several tasks, one workflow after another.
"""

import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from agentflow.domain.models import TaskStatus, WorkflowContext, WorkflowState

logger = logging.getLogger(__name__)

FAILED_STATE_ERROR = "Workflow ended in failed state"


@dataclass
class QueuedTask:
    """One task in a batch and what became of it."""

    task: str
    status: TaskStatus = TaskStatus.PENDING
    result: WorkflowContext | None = None
    error: str | None = None
    duration: float | None = None  # Seconds


def parse_tasks(text: str) -> list[str]:
    """One task per line; blank lines and '#' comments are ignored."""
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


async def run_task_queue(
    tasks: Iterable[str],
    run_one: Callable[[str], Awaitable[WorkflowContext]],
    stop_on_failure: bool = False,
) -> list[QueuedTask]:
    """
    Run tasks strictly in order.

    Args:
        tasks: Task descriptions
        run_one: Runs one workflow and returns its final context
        stop_on_failure: Mark every later task skipped after a failure

    Returns:
        One QueuedTask per input task, in input order
    """
    queue = [QueuedTask(task=task) for task in tasks]

    for position, item in enumerate(queue, start=1):
        item.status = TaskStatus.RUNNING
        logger.info("Task %d/%d: %s", position, len(queue), item.task)
        started = time.monotonic()
        try:
            item.result = await run_one(item.task)
        except Exception as err:
            logger.error("Task %d failed: %s", position, err)
            item.status = TaskStatus.FAILED
            item.error = str(err)
        else:
            if item.result.state == WorkflowState.FAILED:
                item.status = TaskStatus.FAILED
                item.error = item.result.error or FAILED_STATE_ERROR
            else:
                item.status = TaskStatus.COMPLETED
        item.duration = time.monotonic() - started

        if item.status == TaskStatus.FAILED and stop_on_failure:
            for later in queue[position:]:
                later.status = TaskStatus.SKIPPED
            logger.warning("Stopping queue after failure; %d task(s) skipped", len(queue) - position)
            break

    return queue


def summarize_queue(queue: Iterable[QueuedTask]) -> dict[TaskStatus, int]:
    """Number of tasks per status (every status present, possibly zero)."""
    counts = Counter(item.status for item in queue)
    return {status: counts.get(status, 0) for status in TaskStatus}
