"""
Transition events for the workflow state machine.

Each event kind is its own frozen dataclass carrying exactly the payload
that kind needs; TransitionEvent is the closed union of all of them.
"""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class SpecReady:
    spec: str
    name: ClassVar[str] = "SPEC_READY"


@dataclass(frozen=True)
class PlanApproved:
    plan: str
    name: ClassVar[str] = "PLAN_APPROVED"


@dataclass(frozen=True)
class CodeGenerated:
    files: tuple[str, ...]
    name: ClassVar[str] = "CODE_GENERATED"


@dataclass(frozen=True)
class ReviewDone:
    approved: bool
    feedback: str
    name: ClassVar[str] = "REVIEW_DONE"


@dataclass(frozen=True)
class TestsWritten:
    __test__ = False

    test_files: tuple[str, ...]
    name: ClassVar[str] = "TESTS_WRITTEN"


@dataclass(frozen=True)
class TestsPassed:
    __test__ = False

    name: ClassVar[str] = "TESTS_PASSED"


@dataclass(frozen=True)
class TestsFailed:
    __test__ = False

    failures: str
    name: ClassVar[str] = "TESTS_FAILED"


@dataclass(frozen=True)
class FixApplied:
    files: tuple[str, ...]
    name: ClassVar[str] = "FIX_APPLIED"


@dataclass(frozen=True)
class QAApproved:
    name: ClassVar[str] = "QA_APPROVED"


@dataclass(frozen=True)
class QARejected:
    reason: str
    name: ClassVar[str] = "QA_REJECTED"


@dataclass(frozen=True)
class Abort:
    reason: str | None = None
    name: ClassVar[str] = "ABORT"


TransitionEvent = (
    SpecReady
    | PlanApproved
    | CodeGenerated
    | ReviewDone
    | TestsWritten
    | TestsPassed
    | TestsFailed
    | FixApplied
    | QAApproved
    | QARejected
    | Abort
)
