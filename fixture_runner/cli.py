"""CLI entry point for the fixture runner."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from fixture_runner.config import load_config, parse_filters
from fixture_runner.definition_loader import DEFINITION_FILE, load_test_definition
from fixture_runner.driver import SubprocessDriver
from fixture_runner.errors import FixtureRunnerError, SessionFailedError
from fixture_runner.lock import LockService
from fixture_runner.models.result import Report
from fixture_runner.presenter import Presenter
from fixture_runner.runner import Runner, check_report

STATUS_SYMBOLS = {
    "passed": "✓",
    "provisional": "~",
    "failed": "✗",
}


def log_results_summary(log: logging.Logger, report: Report) -> None:
    """Log a formatted summary of fixture results."""
    log.info("=" * 80)
    log.info("Fixture Results Summary:")
    log.info("=" * 80)

    for result in report.results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s %s %s: %s (%.2fs)",
            symbol,
            result.name,
            result.path,
            result.status,
            result.duration,
        )
        if result.message:
            log.info("  Message: %s", result.message)


def format_output(report: Report) -> dict[str, Any]:
    """Format a report for JSON output."""
    results = [
        {
            "name": result.name,
            "path": result.path,
            "status": result.status,
            "duration": result.duration,
            "message": result.message,
        }
        for result in report.results
    ]
    return {
        "total": report.total,
        "passed": sum(1 for r in results if r["status"] == "passed"),
        "failed": report.failures,
        "provisional": report.provisional,
        "results": results,
    }


async def run(
    definition_path: Path,
    driver_command: str,
    backend: str | None = None,
    project_dir: Path | None = None,
    keep_going: bool = True,
    filters: Sequence[str] = (),
) -> int:
    """Run declared fixtures and return exit code."""
    log = logging.getLogger("fixture_runner")

    log.info("Loading fixture declarations from %s", definition_path)
    definition = await load_test_definition(definition_path)

    if project_dir is None:
        base = definition_path if definition_path.is_dir() else definition_path.parent
        project_dir = base.resolve()

    try:
        config = load_config(keep_going=keep_going, project_dir=project_dir)
    except FixtureRunnerError as e:
        log.error("%s", e)
        return 2

    runner = Runner(
        config=config,
        driver=SubprocessDriver.from_command_line(driver_command, backend=backend),
        presenter=Presenter(max_diff_input=config.max_diff_input),
        lock_service=LockService(
            stale_after=config.stale_after,
            poll_interval=config.poll_interval,
            heartbeat_interval=config.heartbeat_interval,
        ),
    )

    log.info("Running %d declaration(s) in %s", len(definition.tests), project_dir)
    try:
        report = await runner.run(definition.tests, filters)
    except FixtureRunnerError as e:
        log.error("%s", e)
        return 2

    log_results_summary(log, report)
    print(json.dumps(format_output(report), indent=2))

    try:
        check_report(report)
    except SessionFailedError as e:
        log.error("%s", e)
        return 1
    return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Build compiler fixtures and check them against snapshots"
    )
    parser.add_argument(
        "--definition",
        type=Path,
        default=Path(DEFINITION_FILE),
        help="fixtures.yaml file or directory containing one",
    )
    parser.add_argument(
        "--driver",
        required=True,
        help="Compiler driver command line (e.g. 'target/debug/driver')",
    )
    parser.add_argument(
        "--backend",
        default=None,
        help="Backend selector passed to the driver",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=None,
        help="Working directory for fixtures (default: the definition's directory)",
    )
    parser.add_argument(
        "--keep-going",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Run every fixture even after a failure",
    )
    parser.add_argument(
        "filters",
        nargs="*",
        help="Arguments of the form fixture_runner=<substring> selecting fixtures",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            definition_path=args.definition,
            driver_command=args.driver,
            backend=args.backend,
            project_dir=args.project_dir,
            keep_going=args.keep_going,
            filters=parse_filters(args.filters),
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
