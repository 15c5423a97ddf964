"""JSON configuration for the scanner and the inference server.

Every section is optional; missing keys keep their defaults and unknown keys
are ignored. ``config/scanner.example.json`` lists all recognised options.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .gate import GateConfig
from .labels import LabelVocabulary

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/scanner.json")
CLASSIFIER_BACKENDS = ("heuristic", "mock", "tflite", "http")
CAMERA_KINDS = ("stub", "opencv")


@dataclass
class SessionSettings:
    frame_interval: float = 1.5
    queue_size: int = 2
    timeout: float | None = 30.0
    attempts: int = 1


@dataclass
class CameraSettings:
    kind: str = "stub"
    source: str = "0"
    resolution: tuple[int, int] | None = None
    backend: str | int | None = None
    warmup_frames: int = 2


@dataclass
class ClassifierSettings:
    backend: str = "heuristic"
    model_path: str = "assets/model.tflite"
    labels_path: str = "assets/labels.txt"
    api_url: str = "http://127.0.0.1:8000"
    api_timeout: float = 20.0
    seed: int | None = None


@dataclass
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AppConfig:
    gate: GateConfig = field(default_factory=GateConfig)
    labels: LabelVocabulary = field(default_factory=LabelVocabulary)
    session: SessionSettings = field(default_factory=SessionSettings)
    camera: CameraSettings = field(default_factory=CameraSettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    server: ServerSettings = field(default_factory=ServerSettings)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be an object")
    return value


def _number(
    section: dict[str, Any],
    key: str,
    default: Any,
    kind: type,
    where: str,
    optional: bool = False,
) -> Any:
    value = section.get(key, default)
    if value is None:
        if optional:
            return None
        raise ValueError(f"{where}.{key} is required")
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{where}.{key} must be a number, got {value!r}")
    try:
        return kind(value)
    except ValueError as exc:
        raise ValueError(f"{where}.{key} must be a number, got {value!r}") from exc


def _resolution(value: Any) -> tuple[int, int] | None:
    if value in (None, ""):
        return None
    if isinstance(value, str):
        parts = value.lower().split("x")
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        parts = []
    if len(parts) != 2:
        raise ValueError("camera.resolution must be WIDTHxHEIGHT or [width, height]")
    try:
        return int(parts[0]), int(parts[1])
    except (TypeError, ValueError) as exc:
        raise ValueError("camera.resolution must be numeric") from exc


def parse_config(data: dict[str, Any]) -> AppConfig:
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a JSON object")

    session_data = _section(data, "session")
    defaults = SessionSettings()
    session = SessionSettings(
        frame_interval=_number(session_data, "frame_interval", defaults.frame_interval, float, "session"),
        queue_size=max(1, _number(session_data, "queue_size", defaults.queue_size, int, "session")),
        timeout=_number(session_data, "timeout", defaults.timeout, float, "session", optional=True),
        attempts=max(1, _number(session_data, "attempts", defaults.attempts, int, "session")),
    )

    camera_data = _section(data, "camera")
    camera_defaults = CameraSettings()
    kind = str(camera_data.get("kind", camera_defaults.kind)).lower()
    if kind not in CAMERA_KINDS:
        raise ValueError(f"camera.kind must be one of {CAMERA_KINDS}, got {kind!r}")
    camera = CameraSettings(
        kind=kind,
        source=str(camera_data.get("source", camera_defaults.source)),
        resolution=_resolution(camera_data.get("resolution")),
        backend=camera_data.get("backend", camera_defaults.backend),
        warmup_frames=_number(camera_data, "warmup_frames", camera_defaults.warmup_frames, int, "camera"),
    )

    classifier_data = _section(data, "classifier")
    classifier_defaults = ClassifierSettings()
    backend = str(classifier_data.get("backend", classifier_defaults.backend)).lower()
    if backend not in CLASSIFIER_BACKENDS:
        raise ValueError(
            f"classifier.backend must be one of {CLASSIFIER_BACKENDS}, got {backend!r}"
        )
    classifier = ClassifierSettings(
        backend=backend,
        model_path=str(classifier_data.get("model_path", classifier_defaults.model_path)),
        labels_path=str(classifier_data.get("labels_path", classifier_defaults.labels_path)),
        api_url=str(classifier_data.get("api_url", classifier_defaults.api_url)),
        api_timeout=_number(classifier_data, "api_timeout", classifier_defaults.api_timeout, float, "classifier"),
        seed=_number(classifier_data, "seed", classifier_defaults.seed, int, "classifier", optional=True),
    )

    server_data = _section(data, "server")
    server_defaults = ServerSettings()
    server = ServerSettings(
        host=str(server_data.get("host", server_defaults.host)),
        port=_number(server_data, "port", server_defaults.port, int, "server"),
    )

    return AppConfig(
        gate=GateConfig.from_dict(_section(data, "gate")),
        labels=LabelVocabulary.from_dict(_section(data, "labels")),
        session=session,
        camera=camera,
        classifier=classifier,
        server=server,
    )


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from ``path``; ``None`` yields the defaults.

    Raises ``FileNotFoundError`` for an explicit path that does not exist and
    ``ValueError`` for malformed JSON or invalid values.
    """
    if path is None:
        logger.info("No configuration file given; using defaults")
        return AppConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {config_path}: {exc}") from exc
    config = parse_config(data)
    logger.info(
        "Loaded config from %s: classifier=%s camera=%s threshold=%.2f required=%d interval=%.2fs",
        config_path,
        config.classifier.backend,
        config.camera.kind,
        config.gate.confidence_threshold,
        config.gate.required_consecutive_detections,
        config.gate.min_sample_interval,
    )
    return config


__all__ = [
    "AppConfig",
    "CameraSettings",
    "ClassifierSettings",
    "DEFAULT_CONFIG_PATH",
    "ServerSettings",
    "SessionSettings",
    "load_config",
    "parse_config",
]
