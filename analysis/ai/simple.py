from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from statistics import mean

from PIL import Image, ImageFilter, ImageStat, UnidentifiedImageError

from .types import ClassificationSample

logger = logging.getLogger(__name__)

_ANALYSIS_SIZE = (300, 150)
_EDGE_THRESHOLD = 50
# A check scoring above this counts as a detected security feature.
FEATURE_PASS_SCORE = 0.6


@dataclass
class HeuristicNoteClassifier:
    """Baseline banknote checker built from simple image statistics.

    Each check scores the rescaled note in [0, 1]; the mean decides between a
    "Real" and a "Fake" label. Denomination is guessed from the dominant colour
    of the note, which only separates the green, purple and orange Taka notes.
    """

    authentic_threshold: float = 0.7
    pattern_regularity: float = 0.8

    def classify(self, image_bytes: bytes) -> ClassificationSample:
        try:
            image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise RuntimeError("Unable to decode frame for analysis") from exc
        image = image.resize(_ANALYSIS_SIZE)

        checks = self.security_checks(image)
        score = float(max(0.0, min(1.0, mean(checks.values()))))
        authentic = score > self.authentic_threshold
        denomination = self.detect_denomination(image)
        features = detected_features(checks)
        logger.debug(
            "Security checks %s score=%.3f passed=%s",
            {name: round(value, 3) for name, value in checks.items()},
            score,
            list(features),
        )

        prefix = "Real" if authentic else "Fake"
        label = f"{prefix} {denomination} Notes" if denomination else f"{prefix} Notes"
        confidence = score if authentic else 1.0 - score
        return ClassificationSample(label=label, confidence=confidence, features=features)

    def security_checks(self, image: Image.Image) -> dict[str, float]:
        return {
            "color_consistency": _color_consistency(image),
            "texture_quality": _texture_quality(image),
            "edge_sharpness": _edge_sharpness(image),
            "pattern_regularity": self.pattern_regularity,
            "brightness_balance": _brightness_balance(image),
        }

    def detect_denomination(self, image: Image.Image) -> str | None:
        red, green, blue = (int(v) for v in ImageStat.Stat(image).mean[:3])
        if green > red and green > blue:
            return "1000"
        if red > 100 and blue > 100 and green < 100:
            return "500"
        if red > 150 and green > 100 and blue < 50:
            return "200"
        return None


def detected_features(checks: dict[str, float]) -> tuple[str, ...]:
    return tuple(name for name, value in checks.items() if value > FEATURE_PASS_SCORE)


def _color_consistency(image: Image.Image) -> float:
    width, height = image.size
    points = [
        (width // 4, height // 4),
        (width // 2, height // 2),
        (3 * width // 4, 3 * height // 4),
    ]
    sums = [sum(image.getpixel(point)[:3]) for point in points]
    avg = mean(sums)
    spread = mean(abs(value - avg) for value in sums)
    return 1.0 - max(0.0, min(1.0, spread / 100.0))


def _texture_quality(image: Image.Image, samples: int = 10) -> float:
    width, height = image.size
    total = 0.0
    for i in range(samples):
        x = min(i * width // samples, width - 2)
        y = min(i * height // samples, height - 2)
        first = image.getpixel((x, y))
        second = image.getpixel((x + 1, y + 1))
        diff = sum(abs(a - b) for a, b in zip(first[:3], second[:3]))
        total += diff / 765.0
    return max(0.0, min(1.0, total / samples))


def _edge_sharpness(image: Image.Image) -> float:
    edges = image.convert("L").filter(ImageFilter.FIND_EDGES)
    histogram = edges.histogram()
    strong = sum(histogram[_EDGE_THRESHOLD + 1 :])
    pixels = image.size[0] * image.size[1]
    return max(0.0, min(1.0, strong / float(pixels)))


def _brightness_balance(image: Image.Image) -> float:
    width, height = image.size
    half_w, half_h = width // 2, height // 2
    boxes = [
        (0, 0, half_w, half_h),
        (half_w, 0, width, half_h),
        (0, half_h, half_w, height),
        (half_w, half_h, width, height),
    ]
    levels = [ImageStat.Stat(image.crop(box).convert("L")).mean[0] for box in boxes]
    avg = mean(levels)
    spread = mean(abs(level - avg) for level in levels)
    return 1.0 - max(0.0, min(1.0, spread / 100.0))


__all__ = ["FEATURE_PASS_SCORE", "HeuristicNoteClassifier", "detected_features"]
