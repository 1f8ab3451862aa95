"""Similarity-gated character diff between expected and actual output."""

import difflib
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Literal, TypeAlias

log = logging.getLogger(__name__)

MAX_INPUT_LEN = 2048

ChunkKind: TypeAlias = Literal["common", "expected", "actual"]

Side: TypeAlias = Literal["expected", "actual"]


@dataclass(frozen=True, kw_only=True)
class Chunk:
    """Aligned span of text, common to both sides or unique to one."""

    kind: ChunkKind
    text: str


@dataclass(frozen=True, kw_only=True)
class Render:
    """Token to render for one side of a diff."""

    common: bool
    text: str


@dataclass(frozen=True, kw_only=True)
class Diff:
    """Aligned chunks between two strings judged similar enough to display."""

    expected: str
    actual: str
    chunks: Sequence[Chunk]

    @classmethod
    def compute(
        cls, expected: str, actual: str, max_input_len: int = MAX_INPUT_LEN
    ) -> "Diff | None":
        """Diff two strings, or return None when a diff would not help.

        Inputs whose combined length exceeds ``max_input_len`` are refused, as
        are inputs sharing less than four fifths of the longer one. Callers
        then show both strings verbatim.
        """
        if len(expected) + len(actual) > max_input_len:
            return None

        try:
            chunks = _align(expected, actual)
        except Exception:
            log.debug("Diff computation failed", exc_info=True)
            return None

        common_len = sum(len(c.text) for c in chunks if c.kind == "common")
        bigger_len = max(len(expected), len(actual))
        if 5 * common_len < 4 * bigger_len:
            return None

        return cls(expected=expected, actual=actual, chunks=chunks)

    def iter(self, side: Side) -> Iterator[Render]:
        """Yield the tokens that make up one side of the diff, in order."""
        for chunk in self.chunks:
            if chunk.kind == "common":
                yield Render(common=True, text=chunk.text)
            elif chunk.kind == side:
                yield Render(common=False, text=chunk.text)


def _align(expected: str, actual: str) -> list[Chunk]:
    matcher = difflib.SequenceMatcher(None, expected, actual, autojunk=False)
    chunks: list[Chunk] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            chunks.append(Chunk(kind="common", text=expected[i1:i2]))
            continue
        if i2 > i1:
            chunks.append(Chunk(kind="expected", text=expected[i1:i2]))
        if j2 > j1:
            chunks.append(Chunk(kind="actual", text=actual[j1:j2]))
    return chunks
