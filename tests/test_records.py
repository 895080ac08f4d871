"""Tests for the classification record model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from labelseek.errors import EmptyTextError
from labelseek.records import CORPUS_ADAPTER, Classification, ImageClassification


class TestClassification:
    def test_from_label_splits_synonyms(self) -> None:
        classification = Classification.from_label(0.82, "tabby, tabby cat")
        assert classification.probability == pytest.approx(0.82)
        assert classification.classes == ["tabby", "tabby cat"]
        assert classification.stem == ["tabbi", "tabby cat"]

    def test_from_label_rejects_empty_label(self) -> None:
        with pytest.raises(EmptyTextError):
            Classification.from_label(0.5, "  ")

    def test_class_and_stem_must_align(self) -> None:
        with pytest.raises(ValidationError, match="same length"):
            Classification(probability=0.5, classes=["a", "b"], stem=["a"])

    @pytest.mark.parametrize("probability", [-0.01, 1.01])
    def test_probability_bounds(self, probability: float) -> None:
        with pytest.raises(ValidationError):
            Classification(probability=probability, classes=["a"], stem=["a"])

    def test_requires_at_least_one_class(self) -> None:
        with pytest.raises(ValidationError):
            Classification(probability=0.5, classes=[], stem=[])

    def test_serializes_classes_as_class(self) -> None:
        classification = Classification(probability=0.5, classes=["cats"], stem=["cat"])
        assert classification.model_dump(by_alias=True) == {
            "probability": 0.5,
            "class": ["cats"],
            "stem": ["cat"],
        }

    def test_accepts_class_key(self) -> None:
        classification = Classification.model_validate({"probability": 0.1, "class": ["cats"], "stem": ["cat"]})
        assert classification.classes == ["cats"]

    def test_is_immutable(self) -> None:
        classification = Classification(probability=0.5, classes=["cats"], stem=["cat"])
        with pytest.raises(ValidationError):
            classification.probability = 0.9  # type: ignore[misc]


class TestImageClassification:
    def test_top_is_first_classification(self) -> None:
        best = Classification(probability=0.7, classes=["tabby"], stem=["tabbi"])
        other = Classification(probability=0.2, classes=["tiger cat"], stem=["tiger cat"])
        record = ImageClassification(image_path="a.png", absolute_path="/x/a.png", classifications=[best, other])
        assert record.top is best

    def test_requires_at_least_one_classification(self) -> None:
        with pytest.raises(ValidationError):
            ImageClassification(image_path="a.png", absolute_path="/x/a.png", classifications=[])


class TestCorpusAdapter:
    def test_rejects_missing_fields(self) -> None:
        with pytest.raises(ValidationError):
            CORPUS_ADAPTER.validate_python([{"image_path": "a.png", "classifications": []}])

    def test_accepts_empty_corpus(self) -> None:
        assert CORPUS_ADAPTER.validate_json(b"[]") == []
