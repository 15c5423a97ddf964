from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from .types import ClassificationSample

logger = logging.getLogger(__name__)

FALLBACK_LABELS: tuple[str, ...] = ("Real 200 Notes", "Fake 200 Notes")


def load_labels(path: Path) -> tuple[str, ...]:
    """Read a ``labels.txt`` file, dropping leading class indices.

    Lines look like ``"0 Real 200 Notes"``. A missing or unreadable file
    falls back to the two labels the bundled model was trained on.
    """
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        logger.error("Failed to load labels from %s: %s", path, exc)
        return FALLBACK_LABELS

    labels: list[str] = []
    for line in lines:
        text = line.strip()
        if not text:
            continue
        head, _, rest = text.partition(" ")
        if head.isdigit() and rest.strip():
            text = rest.strip()
        labels.append(text)
    if not labels:
        logger.error("Label file %s is empty", path)
        return FALLBACK_LABELS
    logger.debug("Loaded %d labels from %s: %s", len(labels), path, labels)
    return tuple(labels)


def _load_interpreter(model_path: Path) -> Any:
    try:
        from tflite_runtime.interpreter import Interpreter  # type: ignore
    except ImportError as exc:  # pragma: no cover - depends on optional dep
        raise RuntimeError(
            "tflite-runtime is required for TFLiteNoteClassifier"
        ) from exc
    if not model_path.exists():
        raise RuntimeError(f"Model file not found: {model_path}")
    interpreter = Interpreter(model_path=str(model_path))
    interpreter.allocate_tensors()
    return interpreter


@dataclass
class TFLiteNoteClassifier:
    """Run an on-device TFLite image classifier and report its top-1 label."""

    model_path: Path
    labels: Sequence[str] = FALLBACK_LABELS
    input_size: tuple[int, int] = (224, 224)
    interpreter: Any = None
    _input: dict[str, Any] = field(init=False, repr=False)
    _output: dict[str, Any] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.interpreter is None:
            self.interpreter = _load_interpreter(Path(self.model_path))
        self._input = self.interpreter.get_input_details()[0]
        self._output = self.interpreter.get_output_details()[0]
        logger.info(
            "Loaded TFLite model %s labels=%s", self.model_path, list(self.labels)
        )

    def classify(self, image_bytes: bytes) -> ClassificationSample:
        tensor = self._prepare_input(image_bytes)
        try:
            self.interpreter.set_tensor(self._input["index"], tensor)
            self.interpreter.invoke()
            raw = self.interpreter.get_tensor(self._output["index"])[0]
        except Exception as exc:
            raise RuntimeError(f"TFLite inference failed: {exc}") from exc

        scores = self._dequantize(np.asarray(raw))
        if scores.size == 0:
            raise RuntimeError("TFLite model returned no categories")
        index = int(np.argmax(scores))
        label = self.labels[index] if index < len(self.labels) else str(index)
        score = float(max(0.0, min(1.0, float(scores[index]))))
        logger.debug("Detection: %r (%d%%)", label, int(score * 100))
        return ClassificationSample(label=label, confidence=score)

    def _prepare_input(self, image_bytes: bytes) -> np.ndarray:
        try:
            image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise RuntimeError("Unable to decode frame for inference") from exc
        image = image.resize(self.input_size)
        dtype = np.dtype(self._input.get("dtype", np.float32))
        pixels = np.asarray(image)
        if np.issubdtype(dtype, np.floating):
            pixels = pixels.astype(np.float32) / 255.0
        return np.expand_dims(pixels.astype(dtype), axis=0)

    def _dequantize(self, raw: np.ndarray) -> np.ndarray:
        values = raw.astype(np.float32).ravel()
        if np.issubdtype(raw.dtype, np.integer):
            scale, zero_point = self._output.get("quantization", (0.0, 0))
            if scale:
                values = (values - float(zero_point)) * float(scale)
            else:
                values = values / 255.0
        return values


__all__ = ["FALLBACK_LABELS", "TFLiteNoteClassifier", "load_labels"]
