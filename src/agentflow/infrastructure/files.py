"""
File extraction from agent output.

Agents emit files as fenced code blocks tagged with a path. Several tagging
styles are recognized; they are tried in order and the first style that
finds any file wins.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from agentflow.domain.interfaces import FileWriterInterface

logger = logging.getLogger(__name__)

# (path, content) patterns, most explicit first
_FILE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # FILE: path\n```lang\ncontent```
    re.compile(r"FILE:\s*(.+?)\n```\w*\n(.*?)```", re.DOTALL),
    # ```lang:path\ncontent```
    re.compile(r"```\w+:(.+?)\n(.*?)```", re.DOTALL),
)
_FENCED_BLOCK = re.compile(r"```\w*\n(.*?)```", re.DOTALL)
_PATH_COMMENT = re.compile(r"^(?://|#)\s*(.+\.\w+)\s*$")
_LATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # **path** or ### path, then a fenced block
    re.compile(r"(?:\*\*|#{1,4}\s*)([^\s*]+\.\w+)\*{0,2}\s*\n+```\w*\n(.*?)```", re.DOTALL),
    # `path`: then a fenced block
    re.compile(r"`([^\s`]+\.\w{1,4})`[:\s]*\n+```\w*\n(.*?)```", re.DOTALL),
)


@dataclass(frozen=True)
class ParsedFile:
    path: str  # Relative to the project root
    content: str


def _collect(pattern: re.Pattern[str], output: str) -> list[ParsedFile]:
    files = []
    for match in pattern.finditer(output):
        path, content = match.group(1).strip(), match.group(2)
        if path and content:
            files.append(ParsedFile(path=path, content=content))
    return files


def _collect_commented(output: str) -> list[ParsedFile]:
    files = []
    for match in _FENCED_BLOCK.finditer(output):
        content = match.group(1)
        first_line = content.split("\n", 1)[0].strip()
        comment = _PATH_COMMENT.match(first_line)
        if comment:
            files.append(ParsedFile(path=comment.group(1), content=content))
    return files


def parse_files(output: str) -> list[ParsedFile]:
    """
    Extract file blocks from agent output.

    Never raises; text with no recognizable blocks yields an empty list.
    """
    for pattern in _FILE_PATTERNS:
        files = _collect(pattern, output)
        if files:
            return files

    files = _collect_commented(output)
    if files:
        return files

    for pattern in _LATE_PATTERNS:
        files = _collect(pattern, output)
        if files:
            return files

    logger.debug("No file blocks matched. Output preview: %r", output[:200])
    return []


def validate_path(project_root: Path, file_path: str) -> bool:
    """True if file_path resolves inside project_root (and is not the root)."""
    if not file_path or not file_path.strip():
        return False
    root = Path(project_root).resolve()
    try:
        resolved = (root / file_path).resolve()
    except (OSError, RuntimeError):
        return False
    return resolved != root and resolved.is_relative_to(root)


class FilesystemFileWriter(FileWriterInterface):
    """Writes parsed files under the project root."""

    def write_files(self, project_root: Path, files: list[ParsedFile]) -> list[str]:
        """
        Write files, creating parent directories as needed.

        Paths escaping the project root are skipped with a warning.

        Returns:
            Relative paths actually written, in input order
        """
        root = Path(project_root)
        written: list[str] = []
        for parsed in files:
            if not validate_path(root, parsed.path):
                logger.warning("Skipping file with invalid path: %s", parsed.path)
                continue
            target = root / parsed.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(parsed.content, encoding="utf-8")
            written.append(parsed.path)
            logger.debug("Wrote: %s", parsed.path)

        if written:
            logger.info("Wrote %d file(s)", len(written))
        return written

    def parse_and_write(self, project_root: Path, raw_text: str) -> list[str]:
        files = parse_files(raw_text)
        if not files:
            return []
        return self.write_files(project_root, files)
