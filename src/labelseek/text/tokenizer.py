"""Whitespace tokenizer.

Splits a string on whitespace and keeps the offset of each token's first
character. Offsets index the Python string (code points), so
``source[token.start:]`` always begins with ``token.text``. Zero-length
tokens (leading whitespace, whitespace runs) are dropped, so an empty or
whitespace-only string yields no tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class Token:
    """A whitespace-delimited substring and its start offset."""

    text: str
    start: int


class Tokens:
    """Lazy, restartable token sequence over a string.

    Every call to ``iter()`` rescans the source, so the same instance can be
    consumed any number of times with identical results.
    """

    __slots__ = ("_source",)

    def __init__(self, source: str) -> None:
        self._source = source

    @property
    def source(self) -> str:
        return self._source

    def __iter__(self) -> Iterator[Token]:
        source = self._source
        boundary = 0
        for index, char in enumerate(source):
            if char.isspace():
                if index > boundary:
                    yield Token(source[boundary:index], boundary)
                boundary = index + 1
        if boundary < len(source):
            yield Token(source[boundary:], boundary)

    def __repr__(self) -> str:
        return f"Tokens({self._source!r})"


def tokenize(text: str) -> Tokens:
    """Return the whitespace tokens of ``text``."""
    return Tokens(text)
