"""Models for expanded tests and their execution results."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeAlias

from fixture_runner.errors import FixtureRunnerError
from fixture_runner.models.definition import Expectation

Origin: TypeAlias = Literal["literal", "glob"]

Outcome: TypeAlias = Literal["passed", "provisional"]


@dataclass(kw_only=True)
class ExpandedTest:
    """A concrete fixture produced by glob expansion.

    ``expectation`` is the only field that changes after creation, and only
    when a later glob match lands on a path first produced by a glob.
    """

    __test__ = False

    name: str
    path: Path
    resolved_path: Path
    expectation: Expectation
    origin: Origin
    pre_error: FixtureRunnerError | None = None


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Result of a single fixture execution."""

    __test__ = False

    name: str
    path: str
    status: Literal["passed", "provisional", "failed"]
    duration: float
    message: str | None = None


@dataclass(kw_only=True)
class Report:
    """Aggregated results of one batch, written only by the runner loop."""

    total: int = 0
    failures: int = 0
    provisional: int = 0
    results: list[TestResult] = field(default_factory=list)

    def record(self, result: TestResult) -> None:
        """Fold a single test result into the counters."""
        self.results.append(result)
        if result.status == "failed":
            self.failures += 1
        elif result.status == "provisional":
            self.provisional += 1

    @property
    def succeeded(self) -> bool:
        """Whether the batch may be reported as a success."""
        return self.failures == 0 and self.provisional == 0
