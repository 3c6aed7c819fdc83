"""
WorkflowRunner: drives a workflow context to completion.

Asks the state machine which role is due, runs that agent, maps its output
to transition events and checkpoints after every transition. Agent
failures become an ABORT; illegal transitions stop the run and leave the
last valid context recorded as failed.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from agentflow.application.agent import Agent
from agentflow.application.token_tracker import TokenTracker
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
from agentflow.domain.exceptions import AppError, WorkflowError
from agentflow.domain.interfaces import (
    ApprovalInterface,
    FileWriterInterface,
    SessionStoreInterface,
    TestRunnerInterface,
)
from agentflow.domain.models import (
    TERMINAL_STATES,
    AgentInput,
    AgentOutput,
    AgentRole,
    ApprovalDecision,
    WorkflowContext,
    WorkflowState,
)
from agentflow.domain.qa_policy import DEFAULT_QA_POLICY, QAPolicy, evaluate_review
from agentflow.domain.workflow import get_next_agent, is_terminal, transition

logger = logging.getLogger(__name__)

NO_FILES_PARSED = "(no files parsed)"


@dataclass(frozen=True)
class RunnerSettings:
    """Behavioral switches for one run."""

    auto: bool = False  # Skip the approval gate entirely
    human_approval: bool = True
    auto_run_tests: bool = True
    streaming: bool = False


def needs_approval(human_approval: bool, state: WorkflowState) -> bool:
    """Whether the approval gate applies in this state."""
    return human_approval and state not in TERMINAL_STATES


def is_review_approved(text: str) -> bool:
    upper = text.upper()
    return "APPROVE" in upper and "REQUEST_CHANGES" not in upper


def is_judge_pass(text: str) -> bool:
    upper = text.upper()
    return "PASS" in upper and "FAIL" not in upper


def build_agent_context(ctx: WorkflowContext, reference_context: str = "") -> str:
    """Render what the next agent needs to know as markdown sections."""
    sections: list[str] = []
    if reference_context:
        sections.append(reference_context)
    if ctx.spec:
        sections.append(f"## Spec\n{ctx.spec}")
    if ctx.plan and ctx.plan != ctx.spec:
        sections.append(f"## Plan\n{ctx.plan}")
    if ctx.review_feedback:
        sections.append(f"## Review Feedback\n{ctx.review_feedback}")
    if ctx.test_failures:
        sections.append(f"## Test Failures\n{ctx.test_failures}")
    if ctx.generated_files:
        files = "\n".join(f"- {path}" for path in ctx.generated_files)
        sections.append(f"## Modified Files\n{files}")
    return "\n\n".join(sections)


def latest_output(ctx: WorkflowContext) -> str | None:
    """The output the next agent should respond to, if any."""
    match ctx.state:
        case WorkflowState.PLAN_APPROVED:
            return ctx.plan
        case WorkflowState.REVIEW_REJECTED | WorkflowState.REVIEW_DONE:
            return ctx.review_feedback
        case WorkflowState.TESTS_FAILED:
            return ctx.test_failures
        case _:
            return None


class WorkflowRunner:
    """
    Runs agents until the workflow reaches a terminal state or no agent
    is due.

    Collaborators are domain ports, so the runner can be driven by real
    adapters or by in-memory fakes in tests.
    """

    def __init__(
        self,
        agents: Mapping[AgentRole, Agent],
        file_writer: FileWriterInterface,
        test_runner: TestRunnerInterface,
        approval: ApprovalInterface,
        session_store: SessionStoreInterface,
        project_root: Path,
        settings: RunnerSettings | None = None,
        token_tracker: TokenTracker | None = None,
        reference_context: str = "",
        qa_policy: QAPolicy = DEFAULT_QA_POLICY,
        on_chunk: Callable[[str], None] | None = None,
        session_id: str | None = None,
    ):
        """
        Args:
            agents: Agent per role
            file_writer: Writes files parsed from coder, tester and fixer output
            test_runner: Runs the project's tests after the tester writes them
            approval: Human approval gate
            session_store: Checkpoint storage
            project_root: Directory generated files are written into
            settings: Run switches (approval, streaming, test execution)
            token_tracker: Token log; a new one is created when None
            reference_context: Pre-rendered reference documents for agents
            qa_policy: Policy reviews are checked against (advisory)
            on_chunk: Receives streamed output chunks
            session_id: Existing session to keep checkpointing into
        """
        self._agents = dict(agents)
        self._file_writer = file_writer
        self._test_runner = test_runner
        self._approval = approval
        self._session_store = session_store
        self._project_root = Path(project_root)
        self._settings = settings or RunnerSettings()
        self._tokens = token_tracker or TokenTracker()
        self._reference_context = reference_context
        self._qa_policy = qa_policy
        self._on_chunk = on_chunk
        self._session_id = session_id
        self._current: WorkflowContext | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def token_tracker(self) -> TokenTracker:
        return self._tokens

    async def run(self, ctx: WorkflowContext) -> WorkflowContext:
        """
        Drive ctx until it is terminal or no agent is due.

        Never raises for agent or transition failures: the returned context
        is failed and its error field records why.
        """
        self._current = ctx
        try:
            while not is_terminal(ctx):
                finished = await self._finish_interrupted_step(ctx)
                if finished is not None:
                    ctx = finished
                    continue

                role = get_next_agent(ctx)
                if role is None:
                    if ctx.state == WorkflowState.QA_APPROVED:
                        logger.info("Workflow approved by QA")
                    else:
                        logger.warning(
                            "No agent for state %s, stopping", ctx.state.value
                        )
                    break

                agent = self._agents.get(role)
                if agent is None:
                    ctx = await self._apply(
                        ctx, Abort(f"No agent configured for role {role.value}")
                    )
                    break

                logger.info(
                    "[%d/%d] Running %s",
                    ctx.iteration,
                    ctx.max_iterations,
                    role.label,
                )
                try:
                    output = await self._invoke(agent, ctx)
                except WorkflowError:
                    raise
                except Exception as err:
                    logger.error("%s failed: %s", role.label, err)
                    ctx = await self._apply(ctx, Abort(str(err)))
                    break

                self._tokens.record(role, output.model, output.usage)
                logger.info("%s complete (%d tokens)", role.label, output.tokens_used)

                if not self._settings.auto and needs_approval(
                    self._settings.human_approval, ctx.state
                ):
                    decision = await self._approval.ask(ctx, role, output.content)
                    if decision == ApprovalDecision.RETRY:
                        logger.info("Retrying %s", role.label)
                        continue
                    if decision == ApprovalDecision.ABORT:
                        ctx = await self._apply(ctx, Abort("Aborted by user"))
                        break

                ctx = await self._apply_output(ctx, role, output)
        except Exception as err:
            logger.error("Workflow failed: %s", err)
            ctx = self._current
            if not is_terminal(ctx):
                ctx = await self._apply(ctx, Abort(str(err)))

        return ctx

    async def _invoke(self, agent: Agent, ctx: WorkflowContext) -> AgentOutput:
        agent_input = AgentInput(
            task=ctx.task,
            context=build_agent_context(ctx, self._reference_context),
            previous_output=latest_output(ctx),
        )
        if self._settings.streaming:
            return await agent.execute_streaming(agent_input, self._on_chunk)
        return await agent.execute(agent_input)

    async def _apply(
        self, ctx: WorkflowContext, event: TransitionEvent
    ) -> WorkflowContext:
        ctx = transition(ctx, event)
        self._current = ctx
        await self._checkpoint(ctx)
        return ctx

    async def _checkpoint(self, ctx: WorkflowContext) -> None:
        try:
            self._session_id = await asyncio.to_thread(
                self._session_store.save,
                self._project_root,
                ctx,
                self._tokens.entries,
                self._session_id,
            )
        except (OSError, AppError) as err:
            # The run goes on; only this checkpoint is missing
            logger.error("Checkpoint failed: %s", err)

    async def _run_tests(self, ctx: WorkflowContext) -> WorkflowContext:
        if not self._settings.auto_run_tests:
            return await self._apply(ctx, TestsPassed())
        result = await self._test_runner.run(self._project_root)
        if result.passed:
            return await self._apply(ctx, TestsPassed())
        return await self._apply(ctx, TestsFailed(failures=result.output))

    async def _finish_interrupted_step(
        self, ctx: WorkflowContext
    ) -> WorkflowContext | None:
        """
        Complete a step checkpointed between two of its transitions.

        Architect, fixer and tester steps each apply more than one event;
        a session restored in between has no agent due. Returns None for
        every other state.
        """
        match ctx.state:
            case WorkflowState.SPEC_CREATED:
                logger.info("Completing interrupted architect step")
                return await self._apply(ctx, PlanApproved(plan=ctx.spec or ""))
            case WorkflowState.FIX_APPLIED:
                logger.info("Completing interrupted fixer step")
                return await self._apply(ctx, CodeGenerated(files=ctx.generated_files))
            case WorkflowState.TESTS_WRITTEN:
                logger.info("Completing interrupted tester step")
                return await self._run_tests(ctx)
            case _:
                return None

    async def _write_files(self, content: str) -> tuple[str, ...]:
        paths = await asyncio.to_thread(
            self._file_writer.parse_and_write, self._project_root, content
        )
        return tuple(paths) or (NO_FILES_PARSED,)

    async def _apply_output(
        self, ctx: WorkflowContext, role: AgentRole, output: AgentOutput
    ) -> WorkflowContext:
        content = output.content
        match role:
            case AgentRole.ARCHITECT:
                ctx = await self._apply(ctx, SpecReady(spec=content))
                ctx = await self._apply(ctx, PlanApproved(plan=content))
            case AgentRole.CODER:
                files = await self._write_files(content)
                ctx = await self._apply(ctx, CodeGenerated(files=files))
            case AgentRole.FIXER:
                files = await self._write_files(content)
                ctx = await self._apply(ctx, FixApplied(files=files))
                ctx = await self._apply(ctx, CodeGenerated(files=files))
            case AgentRole.REVIEWER:
                approved = is_review_approved(content)
                evaluation = evaluate_review(content, self._qa_policy)
                if approved and not evaluation.passed:
                    logger.warning(
                        "Review approved but exceeds QA policy "
                        "(%d critical, %d warnings)",
                        evaluation.critical_count,
                        evaluation.warning_count,
                    )
                ctx = await self._apply(
                    ctx, ReviewDone(approved=approved, feedback=content)
                )
            case AgentRole.TESTER:
                files = await self._write_files(content)
                ctx = await self._apply(ctx, TestsWritten(test_files=files))
                ctx = await self._run_tests(ctx)
            case AgentRole.JUDGE:
                if is_judge_pass(content):
                    ctx = await self._apply(ctx, QAApproved())
                else:
                    ctx = await self._apply(ctx, QARejected(reason=content))
        return ctx
