"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from labelseek.cli import main
from labelseek.errors import InferenceError
from labelseek.ml.image_classifier import ClassificationResult
from labelseek.store import read_corpus, write_corpus

if TYPE_CHECKING:
    from collections.abc import Iterator

    from conftest import RecordFactory


@pytest.fixture()
def corpus_path(tmp_path: Path, record_factory: RecordFactory) -> Path:
    path = tmp_path / "output.json"
    write_corpus(
        path,
        [
            record_factory("dog.png", ["golden retriev"], classes=["golden retriever"]),
            record_factory("cat.png", ["tabbi", "tabby cat"], classes=["tabby", "tabby cat"]),
        ],
    )
    return path


@pytest.fixture()
def classifier_cls() -> Iterator[MagicMock]:
    with patch("labelseek.cli.OnnxModelManager"), patch("labelseek.cli.OnnxImageClassifier") as cls:
        cls.return_value.classify.return_value = [
            ClassificationResult(label="tabby, tabby cat", confidence=0.7),
            ClassificationResult(label="tiger cat", confidence=0.2),
        ]
        yield cls


class TestSearchCommand:
    def test_prints_ranked_matches(self, corpus_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["search", str(corpus_path), "tabi", "cat"])

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines() == [
            "1: /data/images/cat.png",
            "    - tabby",
            "    - tabby cat",
            "2: /data/images/dog.png",
            "    - golden retriever",
        ]

    def test_empty_query(self, corpus_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["search", str(corpus_path), " "])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert captured.out == ""
        assert "Error: Missing query" in captured.err

    def test_missing_corpus(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["search", str(tmp_path / "absent.json"), "cat"])
        assert exit_code == 1
        assert "absent.json" in capsys.readouterr().err

    def test_malformed_corpus(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{}")
        assert main(["search", str(path), "cat"]) == 1
        assert "Could not load corpus" in capsys.readouterr().err


    def test_corpus_without_classes(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "empty-class.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "image_path": "a.png",
                        "absolute_path": "/a.png",
                        "classifications": [{"probability": 0.5, "class": [], "stem": []}],
                    }
                ]
            )
        )
        assert main(["search", str(path), "cat"]) == 1
        assert "Could not load corpus" in capsys.readouterr().err


class TestClassifyCommand:
    def test_writes_corpus(self, image_dir: Path, tmp_path: Path, classifier_cls: MagicMock) -> None:
        output = tmp_path / "out.json"

        exit_code = main(["classify", str(image_dir), str(output), "2"])

        assert exit_code == 0
        corpus = read_corpus(output)
        assert [Path(r.absolute_path).name for r in corpus] == ["a_blue.png", "b_red.png", "c_green.jpg"]
        assert corpus[0].top.classes == ["tabby", "tabby cat"]
        classifier_cls.return_value.load.assert_called_once()
        assert {call.args[1] for call in classifier_cls.return_value.classify.call_args_list} == {2}

    def test_reports_skipped_images(
        self, image_dir: Path, tmp_path: Path, classifier_cls: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        main(["classify", str(image_dir), str(tmp_path / "out.json")])
        err = capsys.readouterr().err
        assert "d_white.gif" in err
        assert "e_notes.txt" in err

    def test_default_top_k_is_one(self, image_dir: Path, tmp_path: Path, classifier_cls: MagicMock) -> None:
        main(["classify", str(image_dir), str(tmp_path / "out.json")])
        assert {call.args[1] for call in classifier_cls.return_value.classify.call_args_list} == {1}

    def test_model_load_failure_keeps_existing_corpus(
        self, image_dir: Path, corpus_path: Path, classifier_cls: MagicMock
    ) -> None:
        before = read_corpus(corpus_path)
        classifier_cls.return_value.load.side_effect = InferenceError("no network")

        assert main(["classify", str(image_dir), str(corpus_path)]) == 1
        assert read_corpus(corpus_path) == before

    def test_missing_directory(self, tmp_path: Path, classifier_cls: MagicMock) -> None:
        assert main(["classify", str(tmp_path / "absent"), str(tmp_path / "out.json")]) == 1
        assert not (tmp_path / "out.json").exists()

    def test_unwritable_output(self, image_dir: Path, tmp_path: Path, classifier_cls: MagicMock) -> None:
        assert main(["classify", str(image_dir), str(tmp_path / "missing" / "out.json")]) == 1


class TestArguments:
    @pytest.mark.parametrize(
        "argv",
        [[], ["classify"], ["search"], ["frobnicate"], ["classify", "dir", "out.json", "zero"]],
        ids=["no-command", "classify-no-path", "search-no-corpus", "unknown-command", "bad-top-k"],
    )
    def test_usage_errors_exit_non_zero(self, argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        assert exc_info.value.code == 2
        assert capsys.readouterr().err

    def test_top_k_must_be_positive(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            main(["classify", "dir", "out.json", "0"])
        assert "must be at least 1" in capsys.readouterr().err
