"""Session object collecting fixture declarations and running them."""

import asyncio
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Self

from fixture_runner.config import RunnerConfig, load_config, parse_filters
from fixture_runner.driver import CompilerDriver
from fixture_runner.errors import UpdateVarError
from fixture_runner.lock import LockService
from fixture_runner.models.definition import Expectation, TestIntent
from fixture_runner.models.result import Report
from fixture_runner.presenter import Presenter
from fixture_runner.runner import Runner, check_report


@dataclass(kw_only=True)
class FixtureSuite:
    """Collects fixture declarations and runs them as one batch.

    The suite owns the presenter and the lock service for its session; both
    are built from the configuration unless given. Used as a context manager,
    it runs when the block exits normally:

        with FixtureSuite(driver=driver) as suite:
            suite.expect_pass("tests/ui/ok/*.zx")
            suite.expect_compile_fail("tests/ui/err/*.zx")
    """

    driver: CompilerDriver
    config: RunnerConfig | None = None
    presenter: Presenter | None = None
    lock_service: LockService | None = None
    intents: list[TestIntent] = field(default_factory=list)

    def expect_pass(self, path: str | Path) -> None:
        self._declare(path, "pass")

    def expect_compile_fail(self, path: str | Path) -> None:
        self._declare(path, "compile-fail")

    def _declare(self, path: str | Path, expect: Expectation) -> None:
        self.intents.append(TestIntent(path=Path(path), expect=expect))

    async def run_async(self, args: Sequence[str] | None = None) -> Report:
        """Run all declared fixtures.

        Args:
            args: Invocation arguments to read filters from (default: sys.argv)

        Returns:
            The report of a fully successful batch

        Raises:
            UpdateVarError: If the update mode variable is invalid
            SessionFailedError: If any fixture failed or a provisional
                snapshot was written

        """
        config = self.config
        if config is None:
            try:
                config = load_config()
            except UpdateVarError as e:
                (self.presenter or Presenter()).prepare_fail(e)
                raise

        if self.presenter is None:
            self.presenter = Presenter(max_diff_input=config.max_diff_input)

        if self.lock_service is None:
            self.lock_service = LockService(
                stale_after=config.stale_after,
                poll_interval=config.poll_interval,
                heartbeat_interval=config.heartbeat_interval,
            )

        runner = Runner(
            config=config,
            driver=self.driver,
            presenter=self.presenter,
            lock_service=self.lock_service,
        )
        filters = parse_filters(sys.argv[1:] if args is None else args)
        report = await runner.run(self.intents, filters)
        check_report(report)
        return report

    def run(self, args: Sequence[str] | None = None) -> Report:
        """Blocking variant of ``run_async`` for use outside an event loop."""
        return asyncio.run(self.run_async(args))

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.run()
