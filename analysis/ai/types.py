from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol


class Classifier(Protocol):
    def classify(self, image_bytes: bytes) -> "ClassificationSample": ...


@dataclass(frozen=True)
class ClassificationSample:
    """One raw classifier observation for a single analysed frame.

    ``features`` names the security checks the frame passed, for classifiers
    that report them; the decision gate only looks at label and confidence.
    """

    label: str
    confidence: float
    features: tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class Verdict:
    """Stabilised scan result handed to the session controller."""

    is_authentic: bool
    denomination: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = ["Classifier", "ClassificationSample", "Verdict"]
