from __future__ import annotations

import logging
from pathlib import Path

from ..config_loader import ClassifierSettings
from .types import Classifier

logger = logging.getLogger(__name__)


def build_classifier(settings: ClassifierSettings, device_id: str = "scanner") -> Classifier:
    """Instantiate the frame classifier selected by ``settings.backend``."""
    kind = settings.backend
    if kind == "heuristic":
        from .simple import HeuristicNoteClassifier

        classifier: Classifier = HeuristicNoteClassifier()
    elif kind == "mock":
        from .mock import MockNoteClassifier

        classifier = MockNoteClassifier(seed=settings.seed)
    elif kind == "tflite":
        from .tflite_client import TFLiteNoteClassifier, load_labels

        classifier = TFLiteNoteClassifier(
            model_path=Path(settings.model_path),
            labels=load_labels(Path(settings.labels_path)),
        )
    elif kind == "http":
        from ..api.client import RemoteNoteClassifier

        classifier = RemoteNoteClassifier(
            base_url=settings.api_url,
            timeout=settings.api_timeout,
            device_id=device_id,
        )
    else:
        raise ValueError(f"Unsupported classifier backend '{kind}'")
    logger.info("Classifier backend=%s", kind)
    return classifier


__all__ = ["build_classifier"]
