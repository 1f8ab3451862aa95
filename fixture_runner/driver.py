"""Compiler driver invocation and artifact execution."""

import asyncio
import logging
import shlex
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from fixture_runner.errors import DriverInvocationError

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ProcessOutput:
    """Exit status and captured output of a finished process."""

    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def success(self) -> bool:
        """Whether the process exited with status zero."""
        return self.returncode == 0


@dataclass(frozen=True, kw_only=True)
class CompilerDriver(ABC):
    """Abstract base for compiler drivers.

    A driver turns one fixture source into an artifact named ``name`` inside
    ``out_dir``, reporting diagnostics on stderr when it cannot.
    """

    @abstractmethod
    async def build(self, source: Path, *, out_dir: Path, name: str) -> ProcessOutput:
        """Compile a fixture.

        Args:
            source: Absolute path of the fixture source
            out_dir: Directory that receives the artifact
            name: Artifact file name, unique within the batch

        Returns:
            Exit status and captured output of the driver

        Raises:
            DriverInvocationError: If the driver cannot be spawned

        """

    async def run_artifact(self, artifact: Path) -> ProcessOutput:
        """Execute a built artifact and capture its output."""
        return await run_process([str(artifact)])


@dataclass(frozen=True, kw_only=True)
class SubprocessDriver(CompilerDriver):
    """Driver backed by an external compiler executable."""

    command: Sequence[str]
    backend: str | None = None
    cwd: Path | None = None

    @classmethod
    def from_command_line(
        cls, command_line: str, backend: str | None = None
    ) -> "SubprocessDriver":
        """Create a driver from a shell-style command string."""
        return cls(command=tuple(shlex.split(command_line)), backend=backend)

    async def build(self, source: Path, *, out_dir: Path, name: str) -> ProcessOutput:
        """Run ``<command> <source> --out-dir <out_dir> -o <name>``."""
        args = [*self.command, str(source), "--out-dir", str(out_dir), "-o", name]
        if self.backend is not None:
            args += ["--backend", self.backend]
        return await run_process(args, cwd=self.cwd)


async def run_process(args: Sequence[str], cwd: Path | None = None) -> ProcessOutput:
    """Run a process to completion without a timeout."""
    log.debug("Running %s", shlex.join(args))
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise DriverInvocationError(args[0], e) from e

    stdout, stderr = await process.communicate()
    assert process.returncode is not None
    return ProcessOutput(returncode=process.returncode, stdout=stdout, stderr=stderr)
