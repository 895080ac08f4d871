"""Fuzzy search over a corpus by edit distance between stems.

Only each image's top classification takes part in ranking: a search finds
images whose best guess resembles the query, not images that were ever
weakly tagged with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rapidfuzz.distance import Levenshtein

from labelseek.text.normalizer import normalize_query

if TYPE_CHECKING:
    from collections.abc import Sequence

    from labelseek.records import ImageClassification

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


@dataclass(frozen=True)
class SearchHit:
    """A ranked search result. Lower scores are better matches."""

    rank: int
    score: int
    record: ImageClassification

    @property
    def absolute_path(self) -> str:
        return self.record.absolute_path

    @property
    def classes(self) -> list[str]:
        """Every class of the top classification, not only the matched one."""
        return self.record.top.classes


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance: single-character inserts, deletes and substitutions."""
    return Levenshtein.distance(a, b)


def score_record(record: ImageClassification, query_stem: str) -> int:
    """Smallest distance between ``query_stem`` and any stem of the top classification."""
    return min(edit_distance(query_stem, stem) for stem in record.top.stem)


def search(
    corpus: Sequence[ImageClassification],
    query: str,
    limit: int = DEFAULT_LIMIT,
) -> list[SearchHit]:
    """Rank ``corpus`` against ``query`` and return at most ``limit`` hits.

    Hits are sorted by ascending score; ties keep corpus order.

    Raises:
        EmptyQueryError: If the query has no tokens. No ranking is done.
        ValueError: If ``limit`` is less than 1.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    query_stem = normalize_query(query)
    scored = [(record, score_record(record, query_stem)) for record in corpus]
    scored.sort(key=lambda pair: pair[1])

    logger.debug("Query %r (stem %r) scored %d images", query, query_stem, len(scored))
    return [
        SearchHit(rank=rank, score=score, record=record)
        for rank, (record, score) in enumerate(scored[:limit], start=1)
    ]
