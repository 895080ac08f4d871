"""Shared fixtures for the labelseek test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from labelseek.records import Classification, ImageClassification

RecordFactory = Callable[..., ImageClassification]


def make_record(
    name: str,
    stems: list[str],
    classes: list[str] | None = None,
    probability: float = 0.9,
    extra: list[Classification] | None = None,
) -> ImageClassification:
    """Build a record whose top classification has the given stems."""
    top = Classification(probability=probability, classes=classes or list(stems), stem=stems)
    return ImageClassification(
        image_path=f"images/{name}",
        absolute_path=f"/data/images/{name}",
        classifications=[top, *(extra or [])],
    )


@pytest.fixture()
def record_factory() -> RecordFactory:
    return make_record


@pytest.fixture()
def image_dir(tmp_path: Path) -> Path:
    """A directory with two PNGs, one JPEG, one GIF and a text file."""
    directory = tmp_path / "images"
    directory.mkdir()
    Image.new("RGB", (64, 48), color="red").save(directory / "b_red.png")
    Image.new("RGB", (40, 40), color="blue").save(directory / "a_blue.png")
    Image.new("RGB", (300, 200), color="green").save(directory / "c_green.jpg", format="JPEG")
    Image.new("RGB", (16, 16), color="white").save(directory / "d_white.gif", format="GIF")
    (directory / "e_notes.txt").write_text("not an image")
    (directory / "subdir").mkdir()
    return directory
