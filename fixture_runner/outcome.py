"""Per-fixture outcome evaluation and snapshot reconciliation."""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path

from fixture_runner.config import RunnerConfig
from fixture_runner.driver import CompilerDriver, ProcessOutput
from fixture_runner.errors import (
    BuildFailedError,
    MismatchError,
    OpenError,
    ReadSnapshotError,
    RunFailedError,
    ShouldNotHaveCompiledError,
    WriteSnapshotError,
)
from fixture_runner.models.result import ExpandedTest, Outcome
from fixture_runner.normalize import normalize_stderr
from fixture_runner.presenter import Presenter

log = logging.getLogger(__name__)

WIP_GITIGNORE = "*\n"


def check_exists(path: Path) -> None:
    """Ensure a fixture can be opened before spending a build on it.

    Raises:
        OpenError: If the file is missing, unreadable or not a regular file

    """
    if path.is_file():
        return
    try:
        path.open("rb").close()
    except OSError as e:
        raise OpenError(path, e) from e


@dataclass(frozen=True, kw_only=True)
class OutcomeEngine:
    """Builds fixtures and decides their outcome against expectations.

    Failures are raised as ``FixtureRunnerError`` subclasses; successful
    evaluation returns ``"passed"`` or ``"provisional"`` when a snapshot was
    written for review instead of being accepted.
    """

    driver: CompilerDriver
    presenter: Presenter
    config: RunnerConfig
    project_dir: Path

    @property
    def artifacts_dir(self) -> Path:
        return self.project_dir / self.config.artifacts_dir

    @property
    def wip_dir(self) -> Path:
        return self.project_dir / self.config.wip_dir

    def snapshot_path(self, test: ExpandedTest) -> Path:
        """Canonical snapshot location, next to the fixture."""
        return test.resolved_path.with_suffix(self.config.snapshot_suffix)

    async def evaluate(
        self, test: ExpandedTest, *, show_build_stdout: bool = False
    ) -> Outcome:
        """Build a fixture and check the result against its expectation."""
        build = await self.driver.build(
            test.resolved_path, out_dir=self.artifacts_dir, name=test.name
        )
        build_stdout = (
            build.stdout.decode("utf-8", errors="replace") if show_build_stdout else ""
        )
        return await self.check(test, build, build_stdout)

    async def check(
        self, test: ExpandedTest, build: ProcessOutput, build_stdout: str = ""
    ) -> Outcome:
        """Classify a finished build for the test's expectation."""
        stderr = normalize_stderr(build.stderr, self.project_dir)
        match test.expectation:
            case "pass":
                return await self._check_pass(test, build.success, build_stdout, stderr)
            case "compile-fail":
                return self._check_compile_fail(test, build.success, stderr)

    async def _check_pass(
        self, test: ExpandedTest, success: bool, build_stdout: str, stderr: str
    ) -> Outcome:
        if not success:
            self.presenter.failed_to_build(stderr)
            raise BuildFailedError()

        run = await self.driver.run_artifact(self.artifacts_dir / test.name)
        run = dataclasses.replace(run, stdout=build_stdout.encode() + run.stdout)
        self.presenter.output(stderr, run)
        if not run.success:
            self.presenter.run_failed(run.returncode)
            raise RunFailedError()
        return "passed"

    def _check_compile_fail(
        self, test: ExpandedTest, success: bool, stderr: str
    ) -> Outcome:
        if success:
            self.presenter.should_not_have_compiled()
            raise ShouldNotHaveCompiledError()

        snapshot = self.snapshot_path(test)
        if not snapshot.exists():
            if self.config.update_mode == "overwrite":
                self._write(snapshot, stderr)
                self.presenter.overwrite_stderr(snapshot, stderr)
                return "passed"
            wip_path = self._write_wip(snapshot, stderr)
            self.presenter.write_stderr_wip(wip_path, snapshot, stderr)
            return "provisional"

        try:
            expected = snapshot.read_bytes()
        except OSError as e:
            raise ReadSnapshotError(e) from e

        if expected == stderr.encode():
            return "passed"

        if self.config.update_mode == "overwrite":
            log.info("Overwriting mismatched snapshot %s", snapshot)
            self._write(snapshot, stderr)
            self.presenter.overwrite_stderr(snapshot, stderr)
            return "passed"

        self.presenter.mismatch(expected.decode("utf-8", errors="replace"), stderr)
        raise MismatchError()

    def _write_wip(self, snapshot: Path, stderr: str) -> Path:
        wip_path = self.wip_dir / snapshot.name
        try:
            self.wip_dir.mkdir(parents=True, exist_ok=True)
            gitignore = self.wip_dir / ".gitignore"
            if not gitignore.exists():
                gitignore.write_text(WIP_GITIGNORE)
        except OSError as e:
            raise WriteSnapshotError(e) from e
        self._write(wip_path, stderr)
        return wip_path

    def _write(self, path: Path, stderr: str) -> None:
        try:
            path.write_text(stderr, encoding="utf-8", newline="")
        except OSError as e:
            raise WriteSnapshotError(e) from e
