"""
Project-level reference material for agents.

Everything here lives under the project's .agentflow/ directory:

    .agentflow/context/*.md|*.txt        reference documents (auto-loaded)
    .agentflow/prompts/<role>.md         role instruction overrides
    .agentflow/policies/qa-rules.md      custom QA rules
    .agentflow/policies/coding-standards.md
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from agentflow.domain.models import AgentRole, ContextDocument
from agentflow.domain.prompts import DEFAULT_INSTRUCTIONS, AgentPrompt, default_prompt
from agentflow.domain.qa_policy import DEFAULT_QA_POLICY, QAPolicy

logger = logging.getLogger(__name__)

CONFIG_DIR = ".agentflow"
CONTEXT_DIR = "context"
PROMPTS_DIR = "prompts"
POLICIES_DIR = "policies"
QA_RULES_FILE = "qa-rules.md"
CODING_STANDARDS_FILE = "coding-standards.md"
CONTEXT_SUFFIXES = {".md", ".txt"}


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        logger.warning("Failed to read %s: %s", path, err)
        return None


def load_context_documents(
    project_root: Path, explicit_paths: list[str] | tuple[str, ...] = ()
) -> list[ContextDocument]:
    """
    Load reference documents.

    Explicit paths (relative to project_root) come first, then .md/.txt
    files from .agentflow/context/ in name order. Each resolved file is
    loaded at most once; missing or unreadable files are skipped with a
    warning.
    """
    root = Path(project_root)
    seen: set[Path] = set()
    documents: list[ContextDocument] = []

    candidates = [(root / p).resolve() for p in explicit_paths]
    context_dir = root / CONFIG_DIR / CONTEXT_DIR
    if context_dir.is_dir():
        candidates.extend(
            path.resolve()
            for path in sorted(context_dir.iterdir())
            if path.is_file() and path.suffix.lower() in CONTEXT_SUFFIXES
        )

    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        if not path.exists():
            logger.warning("Context file not found: %s", path)
            continue
        content = _read(path)
        if content is not None:
            documents.append(ContextDocument(source=str(path), name=path.name, content=content))
            logger.debug("Loaded context: %s", path.name)

    if documents:
        logger.info("Loaded %d context document(s)", len(documents))
    return documents


def format_context_for_agent(documents: list[ContextDocument]) -> str:
    """Render documents as a markdown section; empty string when none."""
    if not documents:
        return ""
    parts = ["## Reference Documents", ""]
    for doc in documents:
        parts.extend([f"### {doc.name}", "", doc.content, ""])
    return "\n".join(parts)


def load_agent_prompt(project_root: Path, role: AgentRole) -> AgentPrompt:
    """Role prompt from .agentflow/prompts/<role>.md, else the built-in one."""
    path = Path(project_root) / CONFIG_DIR / PROMPTS_DIR / f"{role.value}.md"
    if path.is_file():
        content = _read(path)
        if content and content.strip():
            return AgentPrompt(role=role, instructions=content.strip())
    return default_prompt(role)


def load_coding_standards(project_root: Path) -> str:
    path = Path(project_root) / CONFIG_DIR / POLICIES_DIR / CODING_STANDARDS_FILE
    return (_read(path) or "") if path.is_file() else ""


def load_qa_policy(project_root: Path, **overrides: Any) -> QAPolicy:
    """
    Default policy with custom rules from qa-rules.md and explicit overrides.

    Raises:
        TypeError: If an override names a field QAPolicy does not have
    """
    policy = replace(DEFAULT_QA_POLICY, **overrides)
    path = Path(project_root) / CONFIG_DIR / POLICIES_DIR / QA_RULES_FILE
    if path.is_file():
        rules = _read(path)
        if rules:
            policy = replace(policy, custom_rules=rules)
    return policy


def generate_default_prompts(project_root: Path) -> list[Path]:
    """
    Write the built-in role prompts into .agentflow/prompts/ for editing.

    Existing files are left alone. Also creates the context and policies
    directories.

    Returns:
        Files created
    """
    base = Path(project_root) / CONFIG_DIR
    prompts_dir = base / PROMPTS_DIR
    for directory in (prompts_dir, base / POLICIES_DIR, base / CONTEXT_DIR):
        directory.mkdir(parents=True, exist_ok=True)

    created = []
    for role, instructions in DEFAULT_INSTRUCTIONS.items():
        path = prompts_dir / f"{role.value}.md"
        if not path.exists():
            path.write_text(instructions + "\n", encoding="utf-8")
            created.append(path)
    return created
