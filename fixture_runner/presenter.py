"""Human-readable progress and diagnostics for a fixture run."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from fixture_runner.diff import MAX_INPUT_LEN, Diff, Side
from fixture_runner.driver import ProcessOutput
from fixture_runner.errors import FixtureRunnerError
from fixture_runner.models.result import ExpandedTest, Report

RULE = "-" * 60

UNIQUE_MARKS: dict[Side, tuple[str, str]] = {
    "expected": ("[-", "-]"),
    "actual": ("{+", "+}"),
}


def block(title: str, text: str) -> str:
    """Frame a multi-line text under a title."""
    body = text if text.endswith("\n") or not text else text + "\n"
    return f"{title}:\n{RULE}\n{body}{RULE}"


@dataclass(frozen=True, kw_only=True)
class Presenter:
    """Emits plain structured messages through a logger.

    Owned by the session and passed to everything that reports progress, so
    that output from one run is never interleaved with another's.
    """

    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    max_diff_input: int = MAX_INPUT_LEN

    def begin_test(self, test: ExpandedTest, *, show_expected: bool) -> None:
        suffix = ""
        if show_expected:
            suffix = (
                " [should pass]"
                if test.expectation == "pass"
                else " [should fail to compile]"
            )
        self.log.info("test %s%s ...", test.path, suffix)

    def ok(self) -> None:
        self.log.info("  ok")

    def failed_to_build(self, stderr: str) -> None:
        self.log.error("  error\n%s", block("STDERR", stderr))

    def should_not_have_compiled(self) -> None:
        self.log.error(
            "  error\nExpected test case to fail to compile, but it succeeded."
        )

    def output(self, warnings: str, run: ProcessOutput) -> None:
        """Show the build warnings and the artifact's output, when present."""
        if warnings:
            self.log.info(block("WARNINGS", warnings))
        stdout = run.stdout.decode("utf-8", errors="replace")
        stderr = run.stderr.decode("utf-8", errors="replace")
        if stdout:
            self.log.info(block("STDOUT", stdout))
        if stderr:
            self.log.info(block("STDERR", stderr))

    def run_failed(self, returncode: int) -> None:
        self.log.error(
            "  error\nExecution of the test case was unsuccessful "
            "(exit status %d) but we expected it to be.",
            returncode,
        )

    def mismatch(self, expected: str, actual: str) -> None:
        """Show both outputs, marking differences when a diff is worthwhile."""
        diff = Diff.compute(expected, actual, self.max_diff_input)
        self.log.error(
            "  mismatch\n%s\n%s",
            block("EXPECTED", render(expected, diff, "expected")),
            block("ACTUAL OUTPUT", render(actual, diff, "actual")),
        )

    def write_stderr_wip(self, wip_path: Path, snapshot_path: Path, stderr: str) -> None:
        self.log.warning(
            "  wip\nNOTE: writing the following output to `%s`.\n"
            "Move this file to `%s` to accept it as correct.\n%s",
            wip_path,
            snapshot_path,
            block("STDERR", stderr),
        )

    def overwrite_stderr(self, snapshot_path: Path, stderr: str) -> None:
        self.log.warning(
            "  wip\nNOTE: writing the following output to `%s`.\n%s",
            snapshot_path,
            block("STDERR", stderr),
        )

    def test_fail(self, error: FixtureRunnerError) -> None:
        """Report a failure unless its diagnostics were already shown."""
        if error.already_printed:
            return
        self.log.error("  error\n%s", error)

    def prepare_fail(self, error: FixtureRunnerError) -> None:
        self.log.error("ERROR PREPARING TEST PROJECT: %s", error)

    def no_tests_enabled(self) -> None:
        self.log.warning("There are no fixture tests enabled yet.")

    def stopped_early(self, remaining: int) -> None:
        self.log.warning("Stopping at first failure, %d test(s) not run", remaining)

    def summary(self, report: Report) -> None:
        self.log.info(
            "%d of %d fixture(s) failed, %d provisional snapshot(s) written",
            report.failures,
            report.total,
            report.provisional,
        )


def render(text: str, diff: Diff | None, side: Side) -> str:
    """Render one side of a diff with unique spans marked, or ``text`` as is."""
    if diff is None:
        return text
    start, end = UNIQUE_MARKS[side]
    return "".join(
        token.text if token.common else f"{start}{token.text}{end}"
        for token in diff.iter(side)
    )
