"""Classification records persisted in a corpus."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from labelseek.text.normalizer import normalize_label


class Classification(BaseModel):
    """One candidate label for an image.

    ``classes`` and ``stem`` are index-aligned: one entry per comma-separated
    synonym of the model label. ``classes`` is serialized as ``class``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    probability: float = Field(ge=0.0, le=1.0)
    classes: list[str] = Field(alias="class", min_length=1)
    stem: list[str] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_aligned(self) -> Classification:
        if len(self.classes) != len(self.stem):
            raise ValueError(
                f"class and stem must have the same length ({len(self.classes)} != {len(self.stem)})"
            )
        return self

    @classmethod
    def from_label(cls, probability: float, raw_label: str) -> Classification:
        """Build a classification from a raw model label such as ``"tabby, tabby cat"``."""
        segments = normalize_label(raw_label)
        return cls(
            probability=probability,
            classes=[segment.phrase for segment in segments],
            stem=[segment.stem for segment in segments],
        )


class ImageClassification(BaseModel):
    """A classified image: its paths and its ranked classifications (best first)."""

    model_config = ConfigDict(frozen=True)

    image_path: str
    absolute_path: str
    classifications: list[Classification] = Field(min_length=1)

    @property
    def top(self) -> Classification:
        """The model's highest-confidence classification."""
        return self.classifications[0]


Corpus = list[ImageClassification]

CORPUS_ADAPTER: TypeAdapter[Corpus] = TypeAdapter(Corpus)
