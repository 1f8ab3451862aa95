"""Load fixture declarations from fixtures.yaml files."""

import asyncio
from pathlib import Path

import yaml
from pydantic import ValidationError

from fixture_runner.models.definition import TestDefinition

DEFINITION_FILE = "fixtures.yaml"


async def load_test_definition(path: Path) -> TestDefinition:
    """Load and validate a declaration file.

    Args:
        path: A fixtures.yaml file, or a directory containing one

    Returns:
        Parsed declarations in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, is not valid YAML or does not match
            the declaration schema

    """
    if path.is_dir():
        path = path / DEFINITION_FILE
    if not path.is_file():
        raise FileNotFoundError(f"Test file not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty test file: {path}")

    try:
        return TestDefinition.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid test definition schema in {path}: {e}") from e
