from __future__ import annotations

from .types import ClassificationSample, Classifier, Verdict

__all__ = [
    "ClassificationSample",
    "Classifier",
    "Verdict",
    "HeuristicNoteClassifier",
    "MockNoteClassifier",
    "TFLiteNoteClassifier",
]


def __getattr__(name: str):
    if name == "HeuristicNoteClassifier":
        from .simple import HeuristicNoteClassifier

        return HeuristicNoteClassifier
    if name == "MockNoteClassifier":
        from .mock import MockNoteClassifier

        return MockNoteClassifier
    if name == "TFLiteNoteClassifier":
        from .tflite_client import TFLiteNoteClassifier

        return TFLiteNoteClassifier
    raise AttributeError(f"module 'analysis.ai' has no attribute {name!r}")
