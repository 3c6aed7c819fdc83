"""
Agent prompt definitions.

AgentPrompt holds the standing instructions for one role and renders the
per-step user prompt from an AgentInput. Projects can override the role
instructions with their own markdown files (see
agentflow.infrastructure.context_loader.load_agent_prompt).
"""

from dataclasses import dataclass

from agentflow.domain.models import AgentInput, AgentRole

# =============================================================================
# PROMPT TEMPLATE
# =============================================================================


@dataclass(frozen=True)
class AgentPrompt:
    """Structured prompt for one agent role."""

    role: AgentRole
    instructions: str  # Used as the system prompt
    previous_output_heading: str = "Previous Output"

    def render(self, agent_input: AgentInput) -> str:
        """Render the user prompt for one step."""
        parts = [f"# TASK\n{agent_input.task}"]

        if agent_input.context:
            parts.append(f"# CONTEXT\n{agent_input.context}")

        if agent_input.previous_output:
            parts.append(
                f"# {self.previous_output_heading.upper()}\n"
                f"{agent_input.previous_output}"
            )

        return "\n\n".join(parts)


# =============================================================================
# DEFAULT ROLE INSTRUCTIONS
# =============================================================================

_FILE_FORMAT = (
    "Emit every file as:\n"
    "FILE: relative/path.ext\n"
    "```lang\n<full file content>\n```"
)

DEFAULT_INSTRUCTIONS: dict[AgentRole, str] = {
    AgentRole.ARCHITECT: (
        "You are a software architect. Read the task and produce a concise "
        "specification followed by a step-by-step implementation plan. "
        "List the files to create or change."
    ),
    AgentRole.CODER: (
        "You are a senior developer. Implement the plan exactly. "
        f"{_FILE_FORMAT}"
    ),
    AgentRole.REVIEWER: (
        "You are a code reviewer. Review the implementation against the "
        "spec and plan. Prefix each issue with CRITICAL:, WARNING: or NIT:. "
        "End with a single verdict line: APPROVE or REQUEST_CHANGES."
    ),
    AgentRole.TESTER: (
        "You are a test engineer. Write automated tests covering the spec "
        f"and edge cases. {_FILE_FORMAT}"
    ),
    AgentRole.FIXER: (
        "You are a debugging specialist. Fix the problems described in the "
        "review feedback and test failures. Re-emit every changed file "
        f"completely. {_FILE_FORMAT}"
    ),
    AgentRole.JUDGE: (
        "You are the final QA judge. Decide whether the work satisfies the "
        "task. Answer PASS or FAIL on the first line, then justify briefly."
    ),
}


def default_prompt(role: AgentRole) -> AgentPrompt:
    """Built-in prompt for a role."""
    return AgentPrompt(role=role, instructions=DEFAULT_INSTRUCTIONS[role])


# =============================================================================
# TASK PLANNING
# =============================================================================

PLANNER_INSTRUCTIONS = """You are a task planner. Given reference documents (PRDs, specs, architecture docs), break them down into a list of implementation tasks.

## Rules:
- Output exactly ONE task per line
- Each task should be a clear, actionable instruction a developer can execute
- Order tasks by dependency (foundational tasks first)
- Do NOT number the tasks or add bullet points, just plain text, one per line
- Do NOT add headers, commentary or explanations, ONLY task lines
- Each task should be self-contained enough to hand to an AI coding agent

## Example output:
Create the User model with fields: id, email, name, passwordHash, createdAt
Add input validation middleware for the user registration endpoint
Implement POST /api/users with bcrypt password hashing
Write unit tests for User model validation"""

PLAN_TASK = (
    "Break down the following reference documents into an ordered list of "
    "implementation tasks. Output one task per line, no numbers, no bullets, "
    "no commentary."
)


def planner_prompt() -> AgentPrompt:
    """Architect prompt that turns documents into a one-task-per-line list."""
    return AgentPrompt(role=AgentRole.ARCHITECT, instructions=PLANNER_INSTRUCTIONS)
