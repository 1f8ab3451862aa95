"""Fixtures for integration tests."""

import sys
from pathlib import Path
from typing import Protocol

import pytest

from fixture_runner.driver import SubprocessDriver

FAKE_COMPILER = """\
import pathlib
import sys

source = pathlib.Path(sys.argv[1])
out_dir = pathlib.Path(sys.argv[3])
name = sys.argv[5]
text = source.read_text()

if "error" in text:
    sys.stderr.write(f"error: {text.strip()}\\n --> {source}:1:1\\n")
    sys.exit(1)

out_dir.mkdir(parents=True, exist_ok=True)
artifact = out_dir / name
status = 3 if "panic" in text else 0
artifact.write_text(f"#!/bin/sh\\necho running {name}\\nexit {status}\\n")
artifact.chmod(0o755)
print(f"built {name}")
"""


class WriteFixtureFn(Protocol):
    """Protocol for fixture creation function."""

    def __call__(self, name: str, content: str) -> Path:
        """Create a fixture file and return its path."""


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Directory holding fixtures, snapshots and artifacts."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def write_fixture(project_dir: Path) -> WriteFixtureFn:
    """Return a function to create fixture files."""

    def _write(name: str, content: str) -> Path:
        path = project_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def driver(tmp_path: Path) -> SubprocessDriver:
    """Subprocess driver backed by a small fake compiler script."""
    script = tmp_path / "fake_compiler.py"
    script.write_text(FAKE_COMPILER)
    return SubprocessDriver(command=(sys.executable, str(script)))
