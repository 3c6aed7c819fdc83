"""Tests for review evaluation against the QA policy."""

from agentflow.domain.qa_policy import (
    DEFAULT_QA_POLICY,
    QAPolicy,
    evaluate_review,
    format_policy_for_agent,
)

REVIEW = """\
Overall the change is reasonable.

- CRITICAL: SQL built with string concatenation
- WARNING: missing docstring on handler
1. **WARNING**: broad exception caught
* NIT: trailing whitespace

REQUEST_CHANGES
"""


class TestEvaluateReview:
    """Tests for evaluate_review()."""

    def test_counts_by_severity(self) -> None:
        """Critical and warning counts cover bullets, numbers and bold markers."""
        result = evaluate_review(REVIEW)

        assert result.critical_count == 1
        assert result.warning_count == 2
        assert result.total_issues == 4

    def test_issue_lines_are_captured(self) -> None:
        """Each issue keeps its severity and source line."""
        result = evaluate_review(REVIEW)

        assert result.issues[0].severity == "critical"
        assert "string concatenation" in result.issues[0].line
        assert result.issues[-1].severity == "nit"

    def test_default_policy_fails_on_critical(self) -> None:
        """The default policy tolerates no critical issues."""
        assert evaluate_review(REVIEW).passed is False

    def test_lenient_policy_passes(self) -> None:
        """Raising the thresholds lets the same review pass."""
        policy = QAPolicy(max_critical_issues=1, max_warnings=2)

        assert evaluate_review(REVIEW, policy).passed is True

    def test_warning_threshold(self) -> None:
        """Too many warnings fail even without critical issues."""
        review = "\n".join(f"WARNING: issue {n}" for n in range(3))

        result = evaluate_review(review, QAPolicy(max_warnings=2))

        assert result.critical_count == 0
        assert result.passed is False

    def test_case_insensitive(self) -> None:
        """Severity labels match regardless of case."""
        assert evaluate_review("critical: bad").critical_count == 1

    def test_mid_sentence_mentions_ignored(self) -> None:
        """Only line-leading labels count as issues."""
        result = evaluate_review("There is nothing CRITICAL: here. APPROVE")

        assert result.total_issues == 0
        assert result.passed is True

    def test_empty_review(self) -> None:
        """An empty review has no issues and passes."""
        result = evaluate_review("")

        assert result.total_issues == 0
        assert result.passed is True


class TestFormatPolicy:
    """Tests for format_policy_for_agent()."""

    def test_default_policy(self) -> None:
        """Defaults render their enabled rules and thresholds."""
        text = format_policy_for_agent(DEFAULT_QA_POLICY)

        assert text.startswith("## QA Policy")
        assert "- All tests must pass" in text
        assert "- Code review approval required" in text
        assert "- Maximum critical issues: 0" in text
        assert "- Maximum warnings: 5" in text
        assert "coverage" not in text
        assert "### Custom Rules" not in text

    def test_coverage_and_custom_rules(self) -> None:
        """Coverage and custom rules appear only when set."""
        policy = QAPolicy(
            min_test_coverage=80,
            require_all_tests_pass=False,
            custom_rules="  No print statements.  ",
        )

        text = format_policy_for_agent(policy)

        assert "- Minimum test coverage: 80%" in text
        assert "All tests must pass" not in text
        assert text.endswith("### Custom Rules\nNo print statements.")
