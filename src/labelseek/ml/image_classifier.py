"""ImageNet classification over an ONNX Runtime session.

The classifier returns ``(label, confidence)`` pairs, best first. Labels are
raw model labels and may hold comma-separated synonyms (``"tabby, tabby cat"``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from labelseek.errors import InferenceError

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from labelseek.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """A single classification prediction."""

    label: str
    confidence: float


class ImageClassifier(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def classify(self, image: NDArray[np.float32], top_k: int) -> list[ClassificationResult]:
        """Classify an image and return ranked tags.

        Args:
            image: 1x3xHxW normalized float32 tensor.
            top_k: Number of predictions to return.

        Returns:
            List of classification results sorted by confidence (descending).
        """
        ...


def softmax(logits: NDArray[np.float32]) -> NDArray[np.float32]:
    shifted = logits - np.max(logits)
    exp = np.exp(shifted)
    return exp / np.sum(exp)


class OnnxImageClassifier:
    """Runs an ImageNet classifier loaded through a :class:`ModelManager`."""

    def __init__(self, model_manager: ModelManager, model_name: str) -> None:
        self._model_manager = model_manager
        self._model_name = model_name

    @property
    def model_name(self) -> str:
        return self._model_name

    def load(self) -> None:
        """Download and open the model ahead of the first classification.

        Raises:
            InferenceError: If the weights or labels cannot be loaded.
        """
        self._open()

    def _open(self) -> tuple[InferenceSession, list[str]]:
        try:
            return (
                self._model_manager.get_session(self._model_name),
                self._model_manager.get_labels(self._model_name),
            )
        except Exception as e:
            raise InferenceError(f"Could not load model {self._model_name}: {e}") from e

    def classify(self, image: NDArray[np.float32], top_k: int) -> list[ClassificationResult]:
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")

        session, labels = self._open()

        try:
            input_name = session.get_inputs()[0].name
            logits = session.run(None, {input_name: image})[0]
        except Exception as e:
            raise InferenceError(f"Inference failed on {self._model_name}: {e}") from e

        scores = np.asarray(logits, dtype=np.float32).reshape(-1)
        if scores.shape[0] != len(labels):
            raise InferenceError(
                f"Model {self._model_name} produced {scores.shape[0]} scores for {len(labels)} labels"
            )

        probabilities = softmax(scores)
        order = np.argsort(-probabilities, kind="stable")[:top_k]
        return [ClassificationResult(label=labels[i], confidence=float(probabilities[i])) for i in order]
