"""Command-line interface.

    labelseek classify PATH [OUTPUT] [TOP_K]
    labelseek search CORPUS QUERY...
    labelseek serve
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from labelseek.classify import classify_directory
from labelseek.config import get_settings
from labelseek.errors import ClassificationError, CorpusError, EmptyQueryError
from labelseek.ml.image_classifier import OnnxImageClassifier
from labelseek.ml.model_manager import OnnxModelManager
from labelseek.ml.preprocessing import ImagePreprocessor
from labelseek.search import search
from labelseek.store import read_corpus, write_corpus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import TextIO

    from labelseek.config import Settings
    from labelseek.search import SearchHit

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labelseek",
        description="Classify images and find them again with fuzzy label search.",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    classify_parser = subparsers.add_parser("classify", help="Classify every image in a directory")
    classify_parser.add_argument("path", help="Directory containing the images")
    classify_parser.add_argument(
        "output",
        nargs="?",
        default=settings.corpus_path,
        help=f"Corpus file to write (default: {settings.corpus_path})",
    )
    classify_parser.add_argument(
        "top_k",
        nargs="?",
        type=_positive_int,
        default=settings.top_k,
        help=f"Labels kept per image (default: {settings.top_k})",
    )

    search_parser = subparsers.add_parser("search", help="Search a corpus with a free-text query")
    search_parser.add_argument("corpus", help="Corpus file written by 'classify'")
    search_parser.add_argument("query", nargs="*", help="Query words")

    subparsers.add_parser("serve", help="Run the HTTP API")
    return parser


def print_hits(hits: Sequence[SearchHit], out: TextIO) -> None:
    for hit in hits:
        print(f"{hit.rank}: {hit.absolute_path}", file=out)
        for class_name in hit.classes:
            print(f"    - {class_name}", file=out)


def run_classify(args: argparse.Namespace, settings: Settings) -> int:
    model_manager = OnnxModelManager(settings)
    classifier = OnnxImageClassifier(model_manager, settings.classification_model)
    preprocessor = ImagePreprocessor(settings)
    try:
        classifier.load()
        batch = classify_directory(args.path, classifier, preprocessor, args.top_k)
    except ClassificationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        model_manager.shutdown()

    for failure in batch.failures:
        print(f"Error: {failure.image_path}: {failure.error}", file=sys.stderr)

    try:
        write_corpus(args.output, batch.corpus)
    except CorpusError as e:
        print(f"Error: Could not write corpus {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


def run_search(args: argparse.Namespace, settings: Settings) -> int:
    query = " ".join(args.query).strip()
    if not query:
        print("Error: Missing query", file=sys.stderr)
        return EXIT_FAILURE

    try:
        corpus = read_corpus(args.corpus)
        hits = search(corpus, query, limit=settings.max_results)
    except EmptyQueryError:
        print("Error: Missing query", file=sys.stderr)
        return EXIT_FAILURE
    except CorpusError as e:
        print(f"Error: Could not load corpus {e}", file=sys.stderr)
        return EXIT_FAILURE

    print_hits(hits, sys.stdout)
    return EXIT_OK


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "labelseek.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return EXIT_OK


_COMMANDS = {
    "classify": run_classify,
    "search": run_search,
    "serve": run_serve,
}


def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    args = build_parser(settings).parse_args(argv)
    logger.debug("Running %s", args.command)
    return _COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
