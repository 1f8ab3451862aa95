"""Batch execution of expanded fixtures under the session lock."""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from fixture_runner.config import RunnerConfig
from fixture_runner.driver import CompilerDriver
from fixture_runner.errors import (
    FixtureRunnerError,
    LockError,
    ProjectDirError,
    SessionFailedError,
)
from fixture_runner.expand import expand_globs
from fixture_runner.lock import LockService
from fixture_runner.models.definition import TestIntent
from fixture_runner.models.result import ExpandedTest, Outcome, Report, TestResult
from fixture_runner.outcome import OutcomeEngine, check_exists
from fixture_runner.presenter import Presenter

log = logging.getLogger(__name__)


def filter_tests(
    tests: Sequence[ExpandedTest], filters: Sequence[str]
) -> list[ExpandedTest]:
    """Keep tests whose declared path contains any filter substring."""
    if not filters:
        return list(tests)
    return [t for t in tests if any(f in str(t.path) for f in filters)]


def check_report(report: Report) -> None:
    """Turn a finished report into the session's pass/fail signal.

    Raises:
        SessionFailedError: If any test failed or a provisional snapshot was
            written, since those need a human to review them

    """
    if report.failures > 0:
        raise SessionFailedError(
            f"{report.failures} of {report.total} tests failed"
        )
    if report.provisional > 0:
        raise SessionFailedError(
            "successfully created new stderr files for "
            f"{report.provisional} test cases"
        )


@dataclass(frozen=True, kw_only=True)
class Runner:
    """Runs a batch of fixtures sequentially while holding the directory lock."""

    config: RunnerConfig
    driver: CompilerDriver
    presenter: Presenter
    lock_service: LockService

    async def run(
        self, intents: Sequence[TestIntent], filters: Sequence[str] = ()
    ) -> Report:
        """Expand, filter and run all declared fixtures.

        Args:
            intents: Declarations in declaration order
            filters: Substrings selecting a subset of fixtures by path

        Returns:
            Report with per-test results and failure/provisional counts

        Raises:
            ProjectDirError: If the working directory cannot be determined
            LockError: If the session lock cannot be prepared

        """
        try:
            project_dir = self.project_dir()
        except ProjectDirError as e:
            self.presenter.prepare_fail(e)
            raise

        tests = filter_tests(expand_globs(intents, project_dir), filters)
        has_pass = any(t.expectation == "pass" for t in tests)
        has_compile_fail = any(t.expectation == "compile-fail" for t in tests)

        engine = OutcomeEngine(
            driver=self.driver,
            presenter=self.presenter,
            config=self.config,
            project_dir=project_dir,
        )
        report = Report(total=len(tests))
        lock_path = project_dir / self.config.lock_file

        try:
            async with self.lock_service.holding(lock_path) as lock:
                if not lock.has_file_lock:
                    log.info("Running without a cross-process lock at %s", lock_path)

                if not tests:
                    self.presenter.no_tests_enabled()
                elif self.config.keep_going or not has_pass:
                    await self._run_all(engine, tests, report)
                else:
                    await self._run_individually(
                        engine,
                        tests,
                        report,
                        show_expected=has_pass and has_compile_fail,
                    )
        except LockError as e:
            self.presenter.prepare_fail(e)
            raise

        self.presenter.summary(report)
        return report

    def project_dir(self) -> Path:
        """Resolve the directory fixtures, snapshots and artifacts live under."""
        if self.config.project_dir is not None:
            return self.config.project_dir.resolve()
        try:
            return Path.cwd()
        except OSError as e:
            raise ProjectDirError() from e

    async def _run_all(
        self, engine: OutcomeEngine, tests: Sequence[ExpandedTest], report: Report
    ) -> None:
        for test in tests:
            report.record(await self._run_test(engine, test, show_expected=False))

    async def _run_individually(
        self,
        engine: OutcomeEngine,
        tests: Sequence[ExpandedTest],
        report: Report,
        *,
        show_expected: bool,
    ) -> None:
        for index, test in enumerate(tests):
            result = await self._run_test(
                engine, test, show_expected=show_expected, show_build_stdout=True
            )
            report.record(result)
            if result.status == "failed":
                if remaining := len(tests) - index - 1:
                    self.presenter.stopped_early(remaining)
                return

    async def _run_test(
        self,
        engine: OutcomeEngine,
        test: ExpandedTest,
        *,
        show_expected: bool,
        show_build_stdout: bool = False,
    ) -> TestResult:
        self.presenter.begin_test(test, show_expected=show_expected)
        start = time.monotonic()

        error = test.pre_error
        outcome: Outcome | None = None
        if error is None:
            try:
                check_exists(test.resolved_path)
                outcome = await engine.evaluate(
                    test, show_build_stdout=show_build_stdout
                )
            except FixtureRunnerError as e:
                error = e

        duration = time.monotonic() - start
        if error is not None:
            self.presenter.test_fail(error)
            return TestResult(
                name=test.name,
                path=str(test.path),
                status="failed",
                duration=duration,
                message=str(error),
            )

        assert outcome is not None
        if outcome == "passed":
            self.presenter.ok()
        return TestResult(
            name=test.name, path=str(test.path), status=outcome, duration=duration
        )
