"""Expand fixture declarations into an ordered, deduplicated test set."""

import glob
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from fixture_runner.errors import FixtureRunnerError, GlobError, PatternError
from fixture_runner.models.definition import Expectation, TestIntent
from fixture_runner.models.result import ExpandedTest, Origin

log = logging.getLogger(__name__)

SEPARATORS = re.compile(r"[\\/]")


@dataclass(kw_only=True)
class ExpandedTestSet:
    """Insertion-ordered tests keyed by canonical path."""

    base_dir: Path
    tests: list[ExpandedTest] = field(default_factory=list)
    path_to_index: dict[Path, int] = field(default_factory=dict)

    def insert(
        self,
        path: Path,
        expectation: Expectation,
        *,
        origin: Origin,
        error: FixtureRunnerError | None = None,
    ) -> None:
        """Add a test, folding repeated glob matches into the earlier entry.

        A path already produced by a glob keeps its name and origin and only
        takes the newer expectation. Anything else, including a path whose
        latest entry was declared literally, is appended under a new name.
        """
        resolved = (self.base_dir / path).resolve()

        index = self.path_to_index.get(resolved)
        if index is not None:
            previous = self.tests[index]
            if previous.origin == "glob":
                previous.expectation = expectation
                return

        index = len(self.tests)
        self.path_to_index[resolved] = index
        self.tests.append(
            ExpandedTest(
                name=f"test{index:03}",
                path=path,
                resolved_path=resolved,
                expectation=expectation,
                origin=origin,
                pre_error=error,
            )
        )


def expand_globs(intents: Sequence[TestIntent], base_dir: Path) -> list[ExpandedTest]:
    """Expand intents in declaration order.

    Glob matches are sorted so that ordinal names are stable across runs. A
    pattern that cannot be expanded yields one test carrying the error, to be
    reported as a failure when the batch runs.
    """
    expanded = ExpandedTestSet(base_dir=base_dir)

    for intent in intents:
        if not intent.is_glob:
            expanded.insert(intent.path, intent.expect, origin="literal")
            continue

        try:
            paths = glob_paths(str(intent.path), base_dir)
        except FixtureRunnerError as e:
            log.debug("Cannot expand %s: %s", intent.path, e)
            expanded.insert(intent.path, intent.expect, origin="literal", error=e)
            continue

        for path in paths:
            expanded.insert(path, intent.expect, origin="glob")

    return expanded.tests


def glob_paths(pattern: str, base_dir: Path) -> Sequence[Path]:
    """Match a pattern relative to ``base_dir`` and return sorted paths.

    Raises:
        PatternError: If the pattern is malformed
        GlobError: If the filesystem cannot be queried

    """
    check_pattern(pattern)
    try:
        matches = glob.glob(pattern, root_dir=base_dir, recursive=True)
    except OSError as e:
        raise GlobError(pattern, e) from e
    return sorted(Path(match) for match in matches)


def check_pattern(pattern: str) -> None:
    """Reject patterns that would silently match something unintended.

    ``**`` must be a whole path component, and every ``[`` must open a
    closed character class.
    """
    offset = 0
    for component in SEPARATORS.split(pattern):
        if "**" in component and component != "**":
            position = offset + component.index("**")
            raise PatternError(
                pattern,
                position,
                "recursive wildcards must form a single path component",
            )
        offset += len(component) + 1

    i = 0
    while i < len(pattern):
        if pattern[i] == "[":
            end = _class_end(pattern, i)
            if end is None:
                raise PatternError(pattern, i, "invalid range pattern")
            i = end
        i += 1


def _class_end(pattern: str, start: int) -> int | None:
    i = start + 1
    if i < len(pattern) and pattern[i] == "!":
        i += 1
    # A leading ']' is a literal member of the class.
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    end = pattern.find("]", i)
    return None if end == -1 else end
