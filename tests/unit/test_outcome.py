"""Tests for outcome evaluation and snapshot reconciliation."""

import logging
from pathlib import Path

import pytest

from fixture_runner.config import RunnerConfig, UpdateMode
from fixture_runner.driver import ProcessOutput
from fixture_runner.errors import (
    BuildFailedError,
    MismatchError,
    OpenError,
    RunFailedError,
    ShouldNotHaveCompiledError,
)
from fixture_runner.models.result import ExpandedTest
from fixture_runner.outcome import OutcomeEngine, check_exists
from fixture_runner.presenter import Presenter
from fixture_runner.testing.drivers import StubDriver
from fixture_runner.testing.factories import ExpandedTestFactory

STDERR = b"error: unknown name `foo`\r\n --> a.zx:1:5\r\n"
NORMALIZED = "error: unknown name `foo`\n --> a.zx:1:5\n"


def make_engine(
    project_dir: Path, driver: StubDriver, update_mode: UpdateMode = "wip"
) -> OutcomeEngine:
    """Create an engine rooted at ``project_dir``."""
    return OutcomeEngine(
        driver=driver,
        presenter=Presenter(),
        config=RunnerConfig(update_mode=update_mode),
        project_dir=project_dir,
    )


def make_test(project_dir: Path, expectation: str) -> ExpandedTest:
    """Create a fixture file and the expanded test pointing at it."""
    source = project_dir / "ui" / "a.zx"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text("fn main() { foo }\n")
    return ExpandedTestFactory.build(
        name="test000",
        path=Path("ui/a.zx"),
        resolved_path=source,
        expectation=expectation,
    )


class TestExpectPass:
    """Tests for fixtures expected to pass."""

    async def test_passes_when_build_and_run_succeed(self, tmp_path: Path) -> None:
        """A fixture that builds and exits 0 passes."""
        driver = StubDriver()
        engine = make_engine(tmp_path, driver)

        outcome = await engine.evaluate(make_test(tmp_path, "pass"))

        assert outcome == "passed"
        assert driver.calls == [("build", "a.zx"), ("run", "test000")]

    async def test_build_failure(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failed build is reported with the driver's stderr."""
        driver = StubDriver(
            builds={"a.zx": ProcessOutput(returncode=1, stderr=STDERR)}
        )
        engine = make_engine(tmp_path, driver)

        with pytest.raises(BuildFailedError):
            await engine.evaluate(make_test(tmp_path, "pass"))

        assert "unknown name `foo`" in caplog.text
        assert ("run", "test000") not in driver.calls

    async def test_run_failure(self, tmp_path: Path) -> None:
        """A non-zero artifact exit status fails the fixture."""
        driver = StubDriver(runs={"test000": ProcessOutput(returncode=101)})
        engine = make_engine(tmp_path, driver)

        with pytest.raises(RunFailedError):
            await engine.evaluate(make_test(tmp_path, "pass"))

    async def test_build_stdout_prefixes_run_output(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Build stdout is shown ahead of the program's own stdout."""
        driver = StubDriver(
            default_build=ProcessOutput(returncode=0, stdout=b"compiling\n"),
            runs={"test000": ProcessOutput(returncode=0, stdout=b"hello\n")},
        )
        engine = make_engine(tmp_path, driver)
        caplog.set_level(logging.INFO)

        await engine.evaluate(make_test(tmp_path, "pass"), show_build_stdout=True)

        assert "compiling\nhello\n" in caplog.text


class TestExpectCompileFail:
    """Tests for fixtures expected to fail to compile."""

    @pytest.fixture
    def failing_driver(self) -> StubDriver:
        """Driver whose builds fail with CRLF diagnostics."""
        return StubDriver(default_build=ProcessOutput(returncode=1, stderr=STDERR))

    async def test_unexpected_success(self, tmp_path: Path) -> None:
        """A successful build of a compile-fail fixture is a failure."""
        engine = make_engine(tmp_path, StubDriver())

        with pytest.raises(ShouldNotHaveCompiledError):
            await engine.evaluate(make_test(tmp_path, "compile-fail"))

    async def test_writes_wip_snapshot(
        self, tmp_path: Path, failing_driver: StubDriver
    ) -> None:
        """Without a snapshot, provisional mode writes one for review."""
        engine = make_engine(tmp_path, failing_driver)
        test = make_test(tmp_path, "compile-fail")

        outcome = await engine.evaluate(test)

        assert outcome == "provisional"
        wip = tmp_path / "wip" / "a.stderr"
        assert wip.read_bytes() == NORMALIZED.encode()
        assert (tmp_path / "wip" / ".gitignore").read_text() == "*\n"
        assert not engine.snapshot_path(test).exists()

    async def test_overwrite_creates_snapshot(
        self, tmp_path: Path, failing_driver: StubDriver
    ) -> None:
        """Without a snapshot, overwrite mode writes it in place and passes."""
        engine = make_engine(tmp_path, failing_driver, "overwrite")
        test = make_test(tmp_path, "compile-fail")

        outcome = await engine.evaluate(test)

        assert outcome == "passed"
        assert (tmp_path / "ui" / "a.stderr").read_bytes() == NORMALIZED.encode()
        assert not (tmp_path / "wip").exists()

    @pytest.mark.parametrize("update_mode", ["wip", "overwrite"])
    async def test_matching_snapshot_passes(
        self, tmp_path: Path, failing_driver: StubDriver, update_mode: UpdateMode
    ) -> None:
        """A snapshot equal to the normalized stderr passes in both modes."""
        engine = make_engine(tmp_path, failing_driver, update_mode)
        test = make_test(tmp_path, "compile-fail")
        engine.snapshot_path(test).write_bytes(NORMALIZED.encode())

        assert await engine.evaluate(test) == "passed"

    async def test_mismatch_in_wip_mode(
        self,
        tmp_path: Path,
        failing_driver: StubDriver,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A differing snapshot fails and is left untouched."""
        engine = make_engine(tmp_path, failing_driver)
        test = make_test(tmp_path, "compile-fail")
        snapshot = engine.snapshot_path(test)
        snapshot.write_text("error: unknown name `bar`\n --> a.zx:1:5\n")

        with pytest.raises(MismatchError):
            await engine.evaluate(test)

        assert snapshot.read_text() == "error: unknown name `bar`\n --> a.zx:1:5\n"
        assert "mismatch" in caplog.text
        assert "EXPECTED" in caplog.text

    async def test_mismatch_in_overwrite_mode(
        self, tmp_path: Path, failing_driver: StubDriver
    ) -> None:
        """A differing snapshot is rewritten in overwrite mode."""
        engine = make_engine(tmp_path, failing_driver, "overwrite")
        test = make_test(tmp_path, "compile-fail")
        snapshot = engine.snapshot_path(test)
        snapshot.write_text("something else entirely\n")

        assert await engine.evaluate(test) == "passed"
        assert snapshot.read_bytes() == NORMALIZED.encode()

    async def test_comparison_is_byte_exact(
        self, tmp_path: Path, failing_driver: StubDriver
    ) -> None:
        """A snapshot with CRLF line endings does not match normalized output."""
        engine = make_engine(tmp_path, failing_driver)
        test = make_test(tmp_path, "compile-fail")
        engine.snapshot_path(test).write_bytes(STDERR)

        with pytest.raises(MismatchError):
            await engine.evaluate(test)


def test_check_exists_raises_open_error(tmp_path: Path) -> None:
    """A missing fixture raises OpenError naming the path."""
    missing = tmp_path / "missing.zx"

    with pytest.raises(OpenError, match="missing.zx"):
        check_exists(missing)


def test_check_exists_accepts_existing_file(tmp_path: Path) -> None:
    """An existing fixture passes the check."""
    path = tmp_path / "a.zx"
    path.write_text("")

    check_exists(path)


def test_check_exists_rejects_directory(tmp_path: Path) -> None:
    """A directory matched in place of a fixture file raises OpenError."""
    directory = tmp_path / "nested"
    directory.mkdir()

    with pytest.raises(OpenError, match="nested"):
        check_exists(directory)
