"""
Workflow state machine.

Pure functions over WorkflowContext. transition() never mutates its input:
it returns a new context with the new state, updated fields and one more
history record, or raises WorkflowError for an illegal event.

Transition table:

    SPEC_READY      idle                          -> spec_created
    PLAN_APPROVED   spec_created                  -> plan_approved
    CODE_GENERATED  plan_approved | fix_applied   -> code_generated
    REVIEW_DONE     code_generated                -> review_done | review_rejected (+1)
    TESTS_WRITTEN   review_done                   -> tests_written
    TESTS_PASSED    tests_written                 -> tests_passed
    TESTS_FAILED    tests_written                 -> tests_failed
    FIX_APPLIED     review_rejected | tests_failed -> fix_applied (+1)
    QA_APPROVED     tests_passed                  -> qa_approved
    QA_REJECTED     tests_passed                  -> qa_rejected
    ABORT           any non-terminal state        -> failed
"""

from dataclasses import replace
from datetime import UTC, datetime
from typing import assert_never

from agentflow.domain.events import (
    Abort,
    CodeGenerated,
    FixApplied,
    PlanApproved,
    QAApproved,
    QARejected,
    ReviewDone,
    SpecReady,
    TestsFailed,
    TestsPassed,
    TestsWritten,
    TransitionEvent,
)
from agentflow.domain.exceptions import ValidationError, WorkflowError
from agentflow.domain.models import (
    TERMINAL_STATES,
    AgentRole,
    TransitionRecord,
    WorkflowContext,
    WorkflowState,
)

_NEXT_AGENT: dict[WorkflowState, AgentRole] = {
    WorkflowState.IDLE: AgentRole.ARCHITECT,
    WorkflowState.PLAN_APPROVED: AgentRole.CODER,
    WorkflowState.CODE_GENERATED: AgentRole.REVIEWER,
    WorkflowState.REVIEW_DONE: AgentRole.TESTER,
    WorkflowState.REVIEW_REJECTED: AgentRole.FIXER,
    WorkflowState.TESTS_FAILED: AgentRole.FIXER,
    WorkflowState.TESTS_PASSED: AgentRole.JUDGE,
}


def create_workflow_context(task: str, max_iterations: int = 5) -> WorkflowContext:
    """
    Create the initial context for a task.

    Args:
        task: Natural-language description of the work
        max_iterations: Upper bound on review/fix cycles

    Returns:
        Context in state idle with iteration 0 and empty history

    Raises:
        ValidationError: If the task is blank or max_iterations < 1
    """
    if not task or not task.strip():
        raise ValidationError("Task must not be empty")
    if max_iterations < 1:
        raise ValidationError(
            f"max_iterations must be at least 1, got {max_iterations}",
            {"max_iterations": max_iterations},
        )
    return WorkflowContext(task=task, max_iterations=max_iterations)


def is_terminal(ctx: WorkflowContext) -> bool:
    """True when the workflow is complete or failed."""
    return ctx.state in TERMINAL_STATES


def get_next_agent(ctx: WorkflowContext) -> AgentRole | None:
    """Role due to act in the current state, or None if no agent is due."""
    return _NEXT_AGENT.get(ctx.state)


def _merge_files(existing: tuple[str, ...], new: tuple[str, ...]) -> tuple[str, ...]:
    # Ordered union, first occurrence wins
    return tuple(dict.fromkeys(existing + tuple(new)))


def _invalid(ctx: WorkflowContext, event: TransitionEvent) -> WorkflowError:
    return WorkflowError(
        f"Invalid transition: {event.name} in state {ctx.state.value}",
        {"state": ctx.state.value, "event": event.name},
    )


def _check_iteration(ctx: WorkflowContext, event: TransitionEvent) -> None:
    if ctx.iteration >= ctx.max_iterations:
        raise WorkflowError(
            f"Max iterations ({ctx.max_iterations}) reached",
            {
                "state": ctx.state.value,
                "event": event.name,
                "iteration": ctx.iteration,
                "max_iterations": ctx.max_iterations,
            },
        )


def _require(
    ctx: WorkflowContext, event: TransitionEvent, *allowed: WorkflowState
) -> None:
    if ctx.state not in allowed:
        raise _invalid(ctx, event)


def transition(ctx: WorkflowContext, event: TransitionEvent) -> WorkflowContext:
    """
    Apply an event to a context.

    Args:
        ctx: Current context (left untouched)
        event: Event to apply

    Returns:
        New context with the resulting state and one more history record

    Raises:
        WorkflowError: If the event is not valid in the current state, the
            state is terminal, or the iteration limit would be exceeded
    """
    if is_terminal(ctx):
        raise _invalid(ctx, event)

    match event:
        case SpecReady(spec=spec):
            _require(ctx, event, WorkflowState.IDLE)
            updated = replace(ctx, state=WorkflowState.SPEC_CREATED, spec=spec)
        case PlanApproved(plan=plan):
            _require(ctx, event, WorkflowState.SPEC_CREATED)
            updated = replace(ctx, state=WorkflowState.PLAN_APPROVED, plan=plan)
        case CodeGenerated(files=files):
            _require(
                ctx, event, WorkflowState.PLAN_APPROVED, WorkflowState.FIX_APPLIED
            )
            updated = replace(
                ctx,
                state=WorkflowState.CODE_GENERATED,
                generated_files=_merge_files(ctx.generated_files, files),
            )
        case ReviewDone(approved=True, feedback=feedback):
            _require(ctx, event, WorkflowState.CODE_GENERATED)
            updated = replace(
                ctx, state=WorkflowState.REVIEW_DONE, review_feedback=feedback
            )
        case ReviewDone(feedback=feedback):
            _require(ctx, event, WorkflowState.CODE_GENERATED)
            _check_iteration(ctx, event)
            updated = replace(
                ctx,
                state=WorkflowState.REVIEW_REJECTED,
                review_feedback=feedback,
                iteration=ctx.iteration + 1,
            )
        case TestsWritten(test_files=test_files):
            _require(ctx, event, WorkflowState.REVIEW_DONE)
            updated = replace(
                ctx,
                state=WorkflowState.TESTS_WRITTEN,
                generated_files=_merge_files(ctx.generated_files, test_files),
            )
        case TestsPassed():
            _require(ctx, event, WorkflowState.TESTS_WRITTEN)
            updated = replace(
                ctx, state=WorkflowState.TESTS_PASSED, test_failures=None
            )
        case TestsFailed(failures=failures):
            _require(ctx, event, WorkflowState.TESTS_WRITTEN)
            updated = replace(
                ctx, state=WorkflowState.TESTS_FAILED, test_failures=failures
            )
        case FixApplied(files=files):
            _require(
                ctx, event, WorkflowState.REVIEW_REJECTED, WorkflowState.TESTS_FAILED
            )
            _check_iteration(ctx, event)
            updated = replace(
                ctx,
                state=WorkflowState.FIX_APPLIED,
                iteration=ctx.iteration + 1,
                generated_files=_merge_files(ctx.generated_files, files),
            )
        case QAApproved():
            _require(ctx, event, WorkflowState.TESTS_PASSED)
            updated = replace(ctx, state=WorkflowState.QA_APPROVED)
        case QARejected(reason=reason):
            _require(ctx, event, WorkflowState.TESTS_PASSED)
            updated = replace(ctx, state=WorkflowState.QA_REJECTED, qa_feedback=reason)
        case Abort(reason=reason):
            updated = replace(ctx, state=WorkflowState.FAILED, error=reason)
        case _:
            assert_never(event)

    record = TransitionRecord(
        from_state=ctx.state,
        to_state=updated.state,
        event=event.name,
        timestamp=datetime.now(UTC).isoformat(),
    )
    return replace(updated, history=ctx.history + (record,))
