"""ONNX classifier weights: registry, download, session cache.

Weights and the ``config.json`` label map of each registered classifier are
fetched from the HuggingFace Hub into ``<models_dir>/<name>``. Sessions stay
cached until they sit idle for longer than ``model_ttl`` seconds.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download
from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

if TYPE_CHECKING:
    from labelseek.config import Settings

logger = logging.getLogger(__name__)

Provider = str | tuple[str, dict[str, object]]


class ModelManager(Protocol):
    """What the classifier and the API need from a model store."""

    def get_session(self, model_name: str) -> InferenceSession: ...

    def get_labels(self, model_name: str) -> list[str]: ...

    def get_loaded_models(self) -> list[str]: ...

    def shutdown(self) -> None: ...


@dataclass(frozen=True)
class ClassifierSpec:
    """Where a classifier's weights and label map live on the Hub."""

    name: str
    repo_id: str
    license: str
    weights_file: str = "model.onnx"
    weights_subfolder: str | None = "onnx"
    config_file: str = "config.json"


MODEL_REGISTRY: dict[str, ClassifierSpec] = {
    spec.name: spec
    for spec in (
        ClassifierSpec("resnet50", "Xenova/resnet-50", "Apache-2.0"),
        ClassifierSpec("resnet18", "Xenova/resnet-18", "Apache-2.0"),
        ClassifierSpec("mobilenet_v2", "Xenova/mobilenet_v2_1.0_224", "Other (TensorFlow Models)"),
    )
}


def lookup_model(model_name: str) -> ClassifierSpec:
    try:
        return MODEL_REGISTRY[model_name]
    except KeyError:
        raise KeyError(f"Unknown model: {model_name}") from None


def _labels_from_config(config_path: str | Path, model_name: str) -> list[str]:
    with open(config_path, encoding="utf-8") as fh:
        id2label: dict[str, str] | None = json.load(fh).get("id2label")
    if not id2label:
        raise ValueError(f"Model '{model_name}' has no id2label map in {Path(config_path).name}")
    return [id2label[key] for key in sorted(id2label, key=int)]


@dataclass
class _LiveSession:
    session: InferenceSession
    last_used: float


class OnnxModelManager:
    """Fetches classifier files on demand and keeps sessions warm."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)
        self._models_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._live: dict[str, _LiveSession] = {}
        self._weights: dict[str, Path] = {}
        self._labels: dict[str, list[str]] = {}

        self.providers = self._providers_for(settings)
        self._options = self._options_for(settings)

    def ensure_downloaded(self, model_name: str) -> Path:
        """Return the local weights file, downloading it on first use."""
        spec = lookup_model(model_name)
        known = self._weights.get(model_name)
        if known is not None and known.exists():
            return known

        weights = Path(
            hf_hub_download(
                repo_id=spec.repo_id,
                filename=spec.weights_file,
                subfolder=spec.weights_subfolder,
                local_dir=str(self._models_dir / spec.name),
            )
        )
        self._weights[model_name] = weights
        logger.info("Fetched %s weights into %s", model_name, weights)
        return weights

    def get_session(self, model_name: str) -> InferenceSession:
        with self._lock:
            live = self._live.get(model_name)
            if live is not None:
                live.last_used = time.monotonic()
                return live.session

        session = InferenceSession(
            str(self.ensure_downloaded(model_name)),
            sess_options=self._options,
            providers=self.providers,
        )

        with self._lock:
            # Another thread may have won the race while the session was built.
            live = self._live.setdefault(model_name, _LiveSession(session, time.monotonic()))
            live.last_used = time.monotonic()
            if live.session is session:
                logger.info("Loaded %s on %s", model_name, self._settings.device)
            return live.session

    def get_labels(self, model_name: str) -> list[str]:
        """Return class labels indexed by output position.

        Labels come from the ``id2label`` map of the model's ``config.json``,
        ordered by integer class id.

        Raises:
            ValueError: If the config has no usable ``id2label`` map.
        """
        with self._lock:
            cached = self._labels.get(model_name)
        if cached is not None:
            return cached

        spec = lookup_model(model_name)
        config_path = hf_hub_download(
            repo_id=spec.repo_id,
            filename=spec.config_file,
            local_dir=str(self._models_dir / spec.name),
        )
        labels = _labels_from_config(config_path, model_name)
        with self._lock:
            self._labels[model_name] = labels
        logger.info("Read %d labels for %s", len(labels), model_name)
        return labels

    def get_loaded_models(self) -> list[str]:
        with self._lock:
            return list(self._live)

    def unload_idle_models(self) -> None:
        """Drop sessions idle for longer than ``model_ttl``; 0 keeps them forever."""
        ttl = self._settings.model_ttl
        if not ttl:
            return

        cutoff = time.monotonic() - ttl
        with self._lock:
            for name in [name for name, live in self._live.items() if live.last_used < cutoff]:
                del self._live[name]
                logger.info("Unloaded idle model %s", name)

    def shutdown(self) -> None:
        with self._lock:
            self._live.clear()
        logger.info("Model sessions released")

    @staticmethod
    def _providers_for(settings: Settings) -> list[Provider]:
        accelerators: dict[str, Provider] = {
            "cuda": (
                "CUDAExecutionProvider",
                {
                    "device_id": 0,
                    "gpu_mem_limit": settings.gpu_mem_limit,
                    "arena_extend_strategy": "kSameAsRequested",
                },
            ),
            "openvino": ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
        }
        accelerator = accelerators.get(settings.device)
        return ["CPUExecutionProvider"] if accelerator is None else [accelerator, "CPUExecutionProvider"]

    @staticmethod
    def _options_for(settings: Settings) -> SessionOptions:
        options = SessionOptions()
        options.intra_op_num_threads = settings.intra_op_threads
        options.inter_op_num_threads = settings.inter_op_threads
        options.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        options.enable_mem_pattern = True
        options.enable_mem_reuse = True
        if settings.device == "openvino":
            # OpenVINO optimizes the graph itself.
            options.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return options
