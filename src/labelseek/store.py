"""JSON persistence for classification corpora.

Writes go to a temporary file next to the target which then replaces it, so
a failed write never leaves the previous corpus missing or truncated.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from labelseek.errors import CorpusError, CorpusFormatError, CorpusNotFoundError, CorpusWriteError
from labelseek.records import CORPUS_ADAPTER

if TYPE_CHECKING:
    from labelseek.records import Corpus

logger = logging.getLogger(__name__)

JSON_INDENT = 2


def write_corpus(path: str | os.PathLike[str], corpus: Corpus) -> None:
    """Serialize ``corpus`` to ``path``, replacing any existing file.

    Raises:
        CorpusWriteError: If the file cannot be written.
    """
    target = Path(path)
    payload = CORPUS_ADAPTER.dump_json(corpus, indent=JSON_INDENT, by_alias=True)

    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.",
            suffix=".tmp",
            dir=target.parent,
        )
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as e:
        raise CorpusWriteError(str(target), str(e)) from e
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)

    logger.info("Wrote %d classified images to %s", len(corpus), target)


def read_corpus(path: str | os.PathLike[str]) -> Corpus:
    """Load a corpus previously written by :func:`write_corpus`.

    Raises:
        CorpusNotFoundError: If ``path`` does not exist.
        CorpusFormatError: If the content is not a valid corpus.
        CorpusError: If the file exists but cannot be read.
    """
    source = Path(path)
    try:
        raw = source.read_bytes()
    except FileNotFoundError as e:
        raise CorpusNotFoundError(str(source), "corpus file not found") from e
    except OSError as e:
        raise CorpusError(str(source), f"corpus file could not be read: {e}") from e

    try:
        corpus = CORPUS_ADAPTER.validate_json(raw)
    except ValidationError as e:
        raise CorpusFormatError(str(source), _summarize(e)) from e

    logger.debug("Loaded %d classified images from %s", len(corpus), source)
    return corpus


def _summarize(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{error.error_count()} validation error(s), first at {location}: {first['msg']}"
