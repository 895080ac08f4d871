"""Classification pipeline: image files in, corpus records out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from labelseek.errors import ClassificationError, EmptyTextError, ImageReadError, InferenceError
from labelseek.records import Classification, ImageClassification

if TYPE_CHECKING:
    from collections.abc import Iterable

    from labelseek.ml.image_classifier import ClassificationResult, ImageClassifier
    from labelseek.ml.preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationFailure:
    """An image that could not be classified, and why."""

    image_path: str
    error: ClassificationError


@dataclass
class BatchResult:
    """Outcome of classifying several images."""

    corpus: list[ImageClassification] = field(default_factory=list)
    failures: list[ClassificationFailure] = field(default_factory=list)


def to_classifications(results: Iterable[ClassificationResult]) -> list[Classification]:
    """Normalize raw model predictions, keeping the model's order.

    Raises:
        InferenceError: If a label has no usable text.
    """
    try:
        return [Classification.from_label(result.confidence, result.label) for result in results]
    except EmptyTextError as e:
        raise InferenceError(f"Model returned an unusable label: {e}") from e


def classify_image(
    image_path: str,
    classifier: ImageClassifier,
    preprocessor: ImagePreprocessor,
    top_k: int,
) -> ImageClassification:
    """Classify one image file.

    Raises:
        ClassificationError: If the image cannot be read or classified.
    """
    image, absolute_path = preprocessor.open_image(image_path)
    results = classifier.classify(preprocessor.to_tensor(image), top_k)
    classifications = to_classifications(results)
    if not classifications:
        raise InferenceError(f"Model returned no classifications for {image_path}")

    logger.info(
        "%s: %s",
        absolute_path,
        ", ".join(f"{c.classes}: {c.probability * 100.0:.2f}%" for c in classifications),
    )
    return ImageClassification(
        image_path=image_path,
        absolute_path=absolute_path,
        classifications=classifications,
    )


def iter_image_paths(directory: str) -> list[str]:
    """List the files directly inside ``directory``, sorted by name.

    Raises:
        ImageReadError: If the directory cannot be listed.
    """
    try:
        entries = sorted(Path(directory).iterdir())
    except OSError as e:
        raise ImageReadError(f"Could not read directory {directory}: {e}") from e
    return [str(entry) for entry in entries if entry.is_file()]


def classify_directory(
    directory: str,
    classifier: ImageClassifier,
    preprocessor: ImagePreprocessor,
    top_k: int,
) -> BatchResult:
    """Classify every file in ``directory``.

    A failing image is recorded in ``BatchResult.failures`` and the batch
    carries on with the remaining files.

    Raises:
        ImageReadError: If the directory itself cannot be read.
        ValueError: If ``top_k`` is less than 1.
    """
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1, got {top_k}")

    batch = BatchResult()
    for image_path in iter_image_paths(directory):
        try:
            batch.corpus.append(classify_image(image_path, classifier, preprocessor, top_k))
        except ClassificationError as e:
            logger.warning("Skipping %s: %s", image_path, e)
            batch.failures.append(ClassificationFailure(image_path=image_path, error=e))

    logger.info(
        "Classified %d of %d images in %s",
        len(batch.corpus),
        len(batch.corpus) + len(batch.failures),
        directory,
    )
    return batch
