"""Text normalization: lowercase, rejoin, stem.

Model labels and user queries go through the same transform so their stems
can be compared with an edit distance.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import snowballstemmer

from labelseek.errors import EmptyQueryError, EmptyTextError
from labelseek.text.tokenizer import tokenize

STEMMER_LANGUAGE = "english"
LABEL_SEPARATOR = ","


@dataclass(frozen=True)
class NormalizedText:
    """A lowercased, single-space-joined phrase and its stem."""

    phrase: str
    stem: str


@lru_cache(maxsize=1)
def _stemmer() -> Any:
    return snowballstemmer.stemmer(STEMMER_LANGUAGE)


def join_tokens(text: str) -> str:
    """Lowercase every token of ``text`` and join them with single spaces."""
    return " ".join(token.text.lower() for token in tokenize(text))


@lru_cache(maxsize=4096)
def stem_phrase(phrase: str) -> str:
    """Stem an already-joined phrase as a single unit.

    The stemmer does not guarantee the case of its output, so the result is
    lowercased again.
    """
    return _stemmer().stemWord(phrase).lower()


def normalize(text: str) -> NormalizedText:
    """Normalize free text into its display phrase and stem.

    Raises:
        EmptyTextError: If ``text`` contains no tokens.
    """
    phrase = join_tokens(text)
    if not phrase:
        raise EmptyTextError("Text contains no tokens")
    return NormalizedText(phrase=phrase, stem=stem_phrase(phrase))


def normalize_query(query: str) -> str:
    """Return the search key for a user query.

    Raises:
        EmptyQueryError: If the query is empty or whitespace-only.
    """
    phrase = join_tokens(query)
    if not phrase:
        raise EmptyQueryError("Missing query")
    return stem_phrase(phrase)


def normalize_label(raw_label: str) -> list[NormalizedText]:
    """Normalize each comma-separated synonym of a model label independently.

    ``"tabby, tabby cat"`` yields two entries, one per synonym, in source
    order. Segments without tokens (``"a,,b"``) are skipped.

    Raises:
        EmptyTextError: If no segment contains a token.
    """
    segments = []
    for segment in raw_label.split(LABEL_SEPARATOR):
        phrase = join_tokens(segment)
        if phrase:
            segments.append(NormalizedText(phrase=phrase, stem=stem_phrase(phrase)))
    if not segments:
        raise EmptyTextError(f"Label contains no tokens: {raw_label!r}")
    return segments
