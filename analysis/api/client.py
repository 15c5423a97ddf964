from __future__ import annotations

import base64
from dataclasses import dataclass, field

import requests

from ..ai.types import ClassificationSample


@dataclass
class RemoteNoteClassifier:
    """Classify frames by posting them to the inference API."""

    base_url: str
    timeout: float = 20.0
    device_id: str = "scanner"
    session: requests.Session = field(default_factory=requests.Session)

    def classify(self, image_bytes: bytes) -> ClassificationSample:
        payload = {
            "device_id": self.device_id,
            "image_base64": base64.b64encode(image_bytes).decode("ascii"),
        }
        try:
            response = self.session.post(
                f"{self.base_url.rstrip('/')}/v1/classify",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:  # pragma: no cover - network conditions
            raise RuntimeError("Timed out waiting for classification response") from exc
        except requests.RequestException as exc:
            raise RuntimeError(f"Failed to call inference API: {exc}") from exc
        except ValueError as exc:
            raise RuntimeError("Inference API returned invalid JSON") from exc
        try:
            return ClassificationSample(
                label=str(data["label"]),
                confidence=float(data["confidence"]),
                features=tuple(str(name) for name in data.get("features") or ()),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise RuntimeError(f"Unexpected inference response: {data!r}") from exc


__all__ = ["RemoteNoteClassifier"]
