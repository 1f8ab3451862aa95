"""Error kinds raised while preparing and running fixtures."""

from pathlib import Path
from typing import ClassVar


class FixtureRunnerError(Exception):
    """Base class for all fixture runner errors.

    Errors whose diagnostics were already shown by the presenter at the point
    of failure set ``already_printed`` so the runner does not repeat them.
    """

    already_printed: ClassVar[bool] = False


class DriverInvocationError(FixtureRunnerError):
    """Raised when the compiler driver or a built artifact cannot be spawned."""

    def __init__(self, command: str, error: OSError) -> None:
        super().__init__(f"failed to execute {command}: {error}")
        self.error = error


class BuildFailedError(FixtureRunnerError):
    """Raised when a fixture expected to pass fails to build."""

    already_printed = True

    def __init__(self) -> None:
        super().__init__("compiler driver reported an error")


class RunFailedError(FixtureRunnerError):
    """Raised when a built artifact exits with a non-zero status."""

    already_printed = True

    def __init__(self) -> None:
        super().__init__("execution of the test case was unsuccessful")


class ShouldNotHaveCompiledError(FixtureRunnerError):
    """Raised when a compile-fail fixture builds successfully."""

    already_printed = True

    def __init__(self) -> None:
        super().__init__("expected test case to fail to compile, but it succeeded")


class MismatchError(FixtureRunnerError):
    """Raised when compiler output differs from the stored snapshot."""

    already_printed = True

    def __init__(self) -> None:
        super().__init__("compiler error does not match expected error")


class OpenError(FixtureRunnerError):
    """Raised when a fixture file cannot be opened."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__(f"{path}: {error.strerror or error}")
        self.path = path
        self.error = error


class ReadSnapshotError(FixtureRunnerError):
    """Raised when an existing snapshot cannot be read."""

    def __init__(self, error: OSError) -> None:
        super().__init__(f"failed to read stderr file: {error}")
        self.error = error


class WriteSnapshotError(FixtureRunnerError):
    """Raised when a snapshot cannot be written."""

    def __init__(self, error: OSError) -> None:
        super().__init__(f"failed to write stderr file: {error}")
        self.error = error


class PatternError(FixtureRunnerError):
    """Raised for a syntactically invalid glob pattern."""

    def __init__(self, pattern: str, position: int, reason: str) -> None:
        super().__init__(
            f"Pattern syntax error near position {position}: {reason} ({pattern!r})"
        )
        self.pattern = pattern
        self.position = position


class GlobError(FixtureRunnerError):
    """Raised when the filesystem cannot be queried for a glob pattern."""

    def __init__(self, pattern: str, error: OSError) -> None:
        super().__init__(f"attempting to expand {pattern!r}: {error}")
        self.error = error


class UpdateVarError(FixtureRunnerError):
    """Raised for an unrecognized update mode environment value."""

    def __init__(self, name: str, value: str) -> None:
        super().__init__(f"unrecognized value of {name}: {value!r}")
        self.value = value


class ProjectDirError(FixtureRunnerError):
    """Raised when the project directory cannot be determined."""

    def __init__(self) -> None:
        super().__init__("failed to determine name of project dir")


class LockError(FixtureRunnerError):
    """Raised when the session lock cannot be prepared."""


class SessionFailedError(FixtureRunnerError):
    """Raised after a batch that had failures or wrote provisional snapshots."""
