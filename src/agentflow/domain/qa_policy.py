"""
QA policy evaluation.

Counts the CRITICAL / WARNING / NIT issues a reviewer lists and decides
whether the review satisfies the project's policy. The result is advisory:
the runner logs disagreements but the reviewer's verdict drives the state
machine.
"""

import re
from dataclasses import dataclass

_ISSUE_PATTERN = re.compile(
    r"^\s*(?:[-*•]|\d+[.)]\s*)?\s*\*{0,2}(CRITICAL|WARNING|NIT)\*{0,2}\s*:",
    re.IGNORECASE | re.MULTILINE,
)


@dataclass(frozen=True)
class QAPolicy:
    """Thresholds applied to reviews and test runs."""

    min_test_coverage: int = 0  # Percent; 0 disables the check
    require_all_tests_pass: bool = True
    require_review_approval: bool = True
    max_critical_issues: int = 0
    max_warnings: int = 5
    custom_rules: str = ""


DEFAULT_QA_POLICY = QAPolicy()


@dataclass(frozen=True)
class ReviewIssue:
    severity: str  # "critical" | "warning" | "nit"
    line: str


@dataclass(frozen=True)
class ReviewEvaluation:
    """Outcome of checking a review against a QAPolicy."""

    passed: bool
    critical_count: int
    warning_count: int
    issues: tuple[ReviewIssue, ...]

    @property
    def total_issues(self) -> int:
        return len(self.issues)


def evaluate_review(review_text: str, policy: QAPolicy = DEFAULT_QA_POLICY) -> ReviewEvaluation:
    """
    Count the issues in a review and check them against the policy.

    Args:
        review_text: Raw reviewer output
        policy: Thresholds to apply

    Returns:
        ReviewEvaluation; passed is False when either threshold is exceeded
    """
    issues = tuple(
        ReviewIssue(severity=match.group(1).lower(), line=_line_at(review_text, match.start()))
        for match in _ISSUE_PATTERN.finditer(review_text)
    )
    critical = sum(1 for issue in issues if issue.severity == "critical")
    warnings = sum(1 for issue in issues if issue.severity == "warning")
    passed = critical <= policy.max_critical_issues and warnings <= policy.max_warnings
    return ReviewEvaluation(
        passed=passed,
        critical_count=critical,
        warning_count=warnings,
        issues=issues,
    )


def _line_at(text: str, offset: int) -> str:
    end = text.find("\n", offset)
    return text[offset : end if end != -1 else len(text)].strip()


def format_policy_for_agent(policy: QAPolicy) -> str:
    """Render the policy as a markdown section for agent context."""
    lines = ["## QA Policy"]
    if policy.min_test_coverage > 0:
        lines.append(f"- Minimum test coverage: {policy.min_test_coverage}%")
    if policy.require_all_tests_pass:
        lines.append("- All tests must pass")
    if policy.require_review_approval:
        lines.append("- Code review approval required")
    lines.append(f"- Maximum critical issues: {policy.max_critical_issues}")
    lines.append(f"- Maximum warnings: {policy.max_warnings}")
    if policy.custom_rules.strip():
        lines.append("")
        lines.append("### Custom Rules")
        lines.append(policy.custom_rules.strip())
    return "\n".join(lines)
