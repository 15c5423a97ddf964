from __future__ import annotations

import random
from dataclasses import dataclass, field

from .types import ClassificationSample


@dataclass
class MockNoteClassifier:
    """Demo analyzer that ignores the image and draws a random confidence."""

    seed: int | None = None
    authentic_label: str = "Real 200 Notes"
    counterfeit_label: str = "Fake 200 Notes"
    authentic_threshold: float = 0.7
    calls: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self._random = random.Random(self.seed)

    def classify(self, image_bytes: bytes) -> ClassificationSample:
        self.calls += 1
        confidence = 0.5 + self._random.random() * 0.5
        label = (
            self.authentic_label
            if confidence > self.authentic_threshold
            else self.counterfeit_label
        )
        return ClassificationSample(label=label, confidence=confidence)


__all__ = ["MockNoteClassifier"]
