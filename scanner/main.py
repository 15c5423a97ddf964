from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from analysis.ai.factory import build_classifier
from analysis.ai.types import Classifier, Verdict
from analysis.config_loader import (
    CLASSIFIER_BACKENDS,
    DEFAULT_CONFIG_PATH,
    AppConfig,
    load_config,
)
from analysis.gate import DecisionGate

from .capture import Camera, build_camera
from .session import ScanSession, SessionConfig

logger = logging.getLogger(__name__)


def parse_resolution(value: str | None) -> tuple[int, int] | None:
    if value is None:
        return None
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError("resolution must be WIDTHxHEIGHT")
    width, height = parts
    try:
        return int(width), int(height)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("resolution must be numeric") from exc


def parse_backend(value: str | int | None) -> str | int | None:
    if value is None or isinstance(value, int):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan a banknote and report whether it looks authentic"
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help=f"JSON configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--camera", choices=["stub", "opencv"], default=None, help="camera backend to use"
    )
    parser.add_argument(
        "--camera-source",
        default=None,
        help="camera index or URL (OpenCV), or a note photo or directory of photos (stub)",
    )
    parser.add_argument(
        "--camera-resolution",
        type=parse_resolution,
        default=None,
        help="force camera resolution WIDTHxHEIGHT (OpenCV only)",
    )
    parser.add_argument(
        "--camera-backend", default=None, help="preferred OpenCV backend (e.g. dshow, v4l2, 700)"
    )
    parser.add_argument(
        "--classifier",
        choices=list(CLASSIFIER_BACKENDS),
        default=None,
        help="frame classifier backend",
    )
    parser.add_argument("--model-path", default=None, help="TFLite model file")
    parser.add_argument("--labels-path", default=None, help="labels.txt for the TFLite model")
    parser.add_argument("--api-url", default=None, help="inference API base URL (http backend)")
    parser.add_argument("--seed", type=int, default=None, help="seed for the mock classifier")
    parser.add_argument(
        "--timeout", type=float, default=None, help="seconds to wait for a verdict per attempt"
    )
    parser.add_argument(
        "--attempts", type=int, default=None, help="number of scan sessions to run"
    )
    parser.add_argument(
        "--require-consistent-label",
        action="store_true",
        help="only count consecutive detections that agree on the label",
    )
    parser.add_argument("--json", action="store_true", help="print verdicts as JSON")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    parser.add_argument(
        "--device-id", default="scanner", help="device identifier sent to the inference API"
    )
    return parser


def apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.camera:
        cfg.camera.kind = args.camera
    if args.camera_source is not None:
        cfg.camera.source = args.camera_source
    if args.camera_resolution is not None:
        cfg.camera.resolution = args.camera_resolution
    if args.camera_backend is not None:
        cfg.camera.backend = args.camera_backend
    if args.classifier:
        cfg.classifier.backend = args.classifier
    if args.model_path:
        cfg.classifier.model_path = args.model_path
    if args.labels_path:
        cfg.classifier.labels_path = args.labels_path
    if args.api_url:
        cfg.classifier.api_url = args.api_url
    if args.seed is not None:
        cfg.classifier.seed = args.seed
    if args.timeout is not None:
        cfg.session.timeout = args.timeout if args.timeout > 0 else None
    if args.attempts is not None:
        cfg.session.attempts = max(1, args.attempts)
    if args.require_consistent_label:
        cfg.gate.require_consistent_label = True
    return cfg


def format_verdict(verdict: Verdict, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(verdict.to_dict())
    status = "AUTHENTIC" if verdict.is_authentic else "COUNTERFEIT"
    return (
        f"{status} denomination={verdict.denomination} "
        f"confidence={verdict.confidence * 100:.0f}%"
    )


def run_sessions(
    cfg: AppConfig, camera: Camera, classifier: Classifier, as_json: bool = False
) -> list[Verdict]:
    verdicts: list[Verdict] = []
    session_config = SessionConfig(
        frame_interval=cfg.session.frame_interval,
        queue_size=cfg.session.queue_size,
        timeout=cfg.session.timeout,
    )
    for attempt in range(1, cfg.session.attempts + 1):
        # One gate per session; counters never carry over between attempts.
        session = ScanSession(
            camera=camera,
            classifier=classifier,
            gate=DecisionGate(config=cfg.gate, vocabulary=cfg.labels),
            config=session_config,
        )
        logger.info("Starting scan attempt %d/%d", attempt, cfg.session.attempts)
        verdict = session.run()
        if verdict is None:
            # One JSON document per attempt; null when no verdict was reached.
            print(json.dumps(None) if as_json else f"Attempt {attempt}: no verdict")
            continue
        verdicts.append(verdict)
        print(format_verdict(verdict, as_json=as_json))
    return verdicts


def run_scan(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="%(levelname)s [%(name)s] %(message)s",
        )

    try:
        cfg = load_config(args.config if Path(args.config).exists() else None)
    except (OSError, ValueError) as exc:
        logger.error("Failed to load configuration: %s", exc)
        return 1
    cfg = apply_overrides(cfg, args)

    try:
        camera = build_camera(
            cfg.camera.kind,
            cfg.camera.source,
            cfg.camera.resolution,
            parse_backend(cfg.camera.backend),
            cfg.camera.warmup_frames,
        )
        classifier = build_classifier(cfg.classifier, device_id=args.device_id)
    except (RuntimeError, ValueError) as exc:
        logger.error("Failed to initialise scanner: %s", exc)
        return 1

    try:
        verdicts = run_sessions(cfg, camera, classifier, as_json=args.json)
    except KeyboardInterrupt:
        logger.info("Scan stopped by user")
        return 1
    finally:
        camera.release()
    return 0 if verdicts else 1


def main() -> None:
    sys.exit(run_scan())


if __name__ == "__main__":
    main()
