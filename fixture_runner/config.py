"""Configuration for a fixture run."""

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Literal, TypeAlias

from pydantic import Field

from fixture_runner.errors import UpdateVarError
from fixture_runner.models.base import Model

UPDATE_ENV_VAR = "FIXTURE_RUNNER"
FILTER_PREFIX = "fixture_runner="

UpdateMode: TypeAlias = Literal["wip", "overwrite"]


class RunnerConfig(Model):
    """Settings shared by the runner, the outcome engine and the lock."""

    update_mode: UpdateMode = Field(
        default="wip", description="Where new or changed snapshots are written"
    )
    keep_going: bool = Field(
        default=True, description="Continue past failures instead of stopping"
    )
    project_dir: Path | None = Field(
        default=None, description="Working directory (None means current dir)"
    )
    artifacts_dir: Path = Field(default=Path(".artifacts"))
    wip_dir: Path = Field(default=Path("wip"))
    snapshot_suffix: str = Field(default=".stderr")
    lock_file: str = Field(default=".lock")
    stale_after: float = Field(default=1.5, gt=0)
    poll_interval: float = Field(default=0.5, gt=0)
    heartbeat_interval: float = Field(default=0.5, gt=0)
    max_diff_input: int = Field(default=2048, ge=0)


def update_mode_from_env(environ: Mapping[str, str] | None = None) -> UpdateMode:
    """Read the snapshot update mode from the environment.

    Raises:
        UpdateVarError: If the variable is set to an unrecognized value

    """
    environ = os.environ if environ is None else environ
    value = environ.get(UPDATE_ENV_VAR)
    if value is None or value == "wip":
        return "wip"
    if value == "overwrite":
        return "overwrite"
    raise UpdateVarError(UPDATE_ENV_VAR, value)


def parse_filters(args: Sequence[str]) -> Sequence[str]:
    """Collect substring filters from ``fixture_runner=<substring>`` arguments."""
    return tuple(
        arg.removeprefix(FILTER_PREFIX)
        for arg in args
        if arg.startswith(FILTER_PREFIX) and arg != FILTER_PREFIX
    )


def load_config(
    environ: Mapping[str, str] | None = None, **overrides: object
) -> RunnerConfig:
    """Build a configuration with the update mode taken from the environment."""
    return RunnerConfig.model_validate(
        {"update_mode": update_mode_from_env(environ), **overrides}
    )
