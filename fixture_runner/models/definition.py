"""Models for fixture declarations loaded from fixtures.yaml files."""

from collections.abc import Sequence
from pathlib import Path
from typing import Literal, TypeAlias

from pydantic import Field

from fixture_runner.models.base import Model

Expectation: TypeAlias = Literal["pass", "compile-fail"]


class TestIntent(Model):
    """A declared fixture path, possibly a glob, with its expected outcome."""

    __test__ = False

    path: Path = Field(..., description="Fixture path, may contain '*' wildcards")
    expect: Expectation = Field(..., description="Expected outcome of the build")

    @property
    def is_glob(self) -> bool:
        """Whether the declared path should be expanded against the filesystem."""
        return "*" in str(self.path)


class TestDefinition(Model):
    """Complete fixture declaration file."""

    __test__ = False

    version: str = Field(..., description="Declaration schema version")
    tests: Sequence[TestIntent] = Field(
        default_factory=list, description="Intents in declaration order"
    )
