from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict

from ..ai.types import ClassificationSample, Classifier

logger = logging.getLogger(__name__)


@dataclass
class ClassificationService:
    classifier: Classifier

    def classify_payload(self, payload: Dict[str, Any]) -> ClassificationSample:
        image_b64: str = payload["image_base64"]
        try:
            image_bytes = base64.b64decode(image_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.warning("Failed to decode image payload: %s", exc)
            raise RuntimeError("Invalid base64 image payload") from exc
        if not image_bytes:
            raise RuntimeError("Empty image payload")

        logger.info(
            "Running inference device=%s image_bytes=%d",
            payload.get("device_id"),
            len(image_bytes),
        )
        sample = self.classifier.classify(image_bytes)
        logger.info(
            "Inference complete device=%s label=%r confidence=%.2f",
            payload.get("device_id"),
            sample.label,
            sample.confidence,
        )
        return sample


__all__ = ["ClassificationService"]
