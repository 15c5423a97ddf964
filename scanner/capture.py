"""Frame sources for the banknote scanner.

``StubCamera`` replays still photos of notes, which is how demos and tests run
without hardware. ``OpenCVCamera`` reads a live feed, typically a USB webcam
over the scanning tray or a phone streaming over HTTP/RTSP.
"""

from __future__ import annotations

import io
import logging
import pathlib
from dataclasses import dataclass
from typing import Protocol, Sequence

from PIL import Image

logger = logging.getLogger(__name__)

SAMPLE_SUFFIXES = (".jpg", ".jpeg", ".png", ".bmp", ".webp")

# Orange card about the size of the classifier's analysis window, close to a
# 200 Taka note. Used when no sample photos are configured.
_PLACEHOLDER_SIZE = (300, 150)
_PLACEHOLDER_COLOR = (205, 120, 30)

# Friendly names accepted for --camera-backend; values are cv2 attribute names.
CV2_BACKENDS = {
    "any": "CAP_ANY",
    "auto": "CAP_ANY",
    "dshow": "CAP_DSHOW",
    "msmf": "CAP_MSMF",
    "v4l2": "CAP_V4L2",
    "avfoundation": "CAP_AVFOUNDATION",
    "gstreamer": "CAP_GSTREAMER",
    "ffmpeg": "CAP_FFMPEG",
    "android": "CAP_ANDROID",
}


@dataclass
class Frame:
    """One encoded photo of the note under the camera."""

    data: bytes
    encoding: str = "jpeg"


class Camera(Protocol):
    def capture(self) -> Frame: ...

    def release(self) -> None: ...


def _placeholder_note() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", _PLACEHOLDER_SIZE, color=_PLACEHOLDER_COLOR).save(buffer, format="JPEG")
    return buffer.getvalue()


def discover_samples(source: str | pathlib.Path) -> list[pathlib.Path]:
    """Expand a stub camera source into the photos it should replay.

    A directory yields its image files in name order; an existing file yields
    itself; anything else yields nothing.
    """
    path = pathlib.Path(source)
    if path.is_dir():
        return sorted(
            child for child in path.iterdir() if child.suffix.lower() in SAMPLE_SUFFIXES
        )
    if path.is_file():
        return [path]
    return []


class StubCamera:
    """Replays note photos in a loop, one per capture."""

    def __init__(self, samples: Sequence[pathlib.Path] = ()) -> None:
        self._samples = list(samples)
        self._placeholder: bytes | None = None
        self.captures = 0

    def capture(self) -> Frame:
        index = self.captures
        self.captures += 1
        if not self._samples:
            if self._placeholder is None:
                self._placeholder = _placeholder_note()
            return Frame(data=self._placeholder)
        sample = self._samples[index % len(self._samples)]
        try:
            data = sample.read_bytes()
        except OSError as exc:
            raise RuntimeError(f"Unable to read sample note {sample}: {exc}") from exc
        return Frame(data=data, encoding=sample.suffix.lstrip(".").lower() or "jpeg")

    def release(self) -> None:
        return None


class OpenCVCamera:
    """Live note capture through ``cv2.VideoCapture``."""

    def __init__(
        self,
        source: int | str = 0,
        *,
        encoding: str = "jpeg",
        jpeg_quality: int = 90,
        resolution: tuple[int, int] | None = None,
        backend: str | int | None = None,
        warmup_frames: int = 2,
    ) -> None:
        try:
            import cv2  # type: ignore
        except ImportError as exc:  # pragma: no cover - depends on optional dep
            raise RuntimeError("opencv-python is required for OpenCVCamera") from exc

        self._cv2 = cv2
        self._encoding = encoding.lstrip(".").lower() or "jpeg"
        self._encode_params: list[int] = []
        if self._encoding in ("jpg", "jpeg"):
            self._encode_params = [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)]
        self._cap = cv2.VideoCapture(source, resolve_backend(backend, cv2))
        if not self._cap.isOpened():
            raise RuntimeError(f"Unable to open camera source {source!r}")
        if resolution:
            width, height = resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))
        # Let auto exposure settle.
        for _ in range(max(0, warmup_frames)):
            if not self._cap.read()[0]:
                break
        logger.info(
            "Opened camera source=%r resolution=%s encoding=%s",
            source,
            resolution,
            self._encoding,
        )

    def capture(self) -> Frame:
        if self._cap is None:
            raise RuntimeError("Camera already released")
        ok, image = self._cap.read()
        if not ok or image is None:
            raise RuntimeError("Failed to capture frame from camera")
        success, buffer = self._cv2.imencode(f".{self._encoding}", image, self._encode_params)
        if not success:
            raise RuntimeError(f"OpenCV failed to encode frame as {self._encoding}")
        return Frame(data=buffer.tobytes(), encoding=self._encoding)

    def release(self) -> None:
        if getattr(self, "_cap", None) is not None:
            self._cap.release()
            self._cap = None


def resolve_backend(backend: str | int | None, cv2_module) -> int:
    if backend is None:
        return cv2_module.CAP_ANY
    if isinstance(backend, int):
        return backend
    attr_name = CV2_BACKENDS.get(backend.strip().lower())
    if attr_name is None:
        raise ValueError(f"Unknown OpenCV backend alias: {backend!r}")
    return getattr(cv2_module, attr_name, cv2_module.CAP_ANY)


def build_camera(
    kind: str,
    source: str,
    resolution: tuple[int, int] | None = None,
    backend: str | int | None = None,
    warmup_frames: int = 2,
) -> Camera:
    if kind == "opencv":
        converted: int | str = int(source) if source.strip().isdigit() else source
        return OpenCVCamera(
            source=converted,
            resolution=resolution,
            backend=backend,
            warmup_frames=warmup_frames,
        )
    samples = discover_samples(source) if source else []
    logger.info("Stub camera replaying %d sample(s) from %r", len(samples), source)
    return StubCamera(samples=samples)


__all__ = [
    "CV2_BACKENDS",
    "Camera",
    "Frame",
    "OpenCVCamera",
    "StubCamera",
    "build_camera",
    "discover_samples",
    "resolve_backend",
]
