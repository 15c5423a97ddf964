from __future__ import annotations

import argparse
import json

import pytest

from analysis.ai.factory import build_classifier
from analysis.ai.mock import MockNoteClassifier
from analysis.ai.simple import HeuristicNoteClassifier
from analysis.ai.types import ClassificationSample, Verdict
from analysis.api.client import RemoteNoteClassifier
from analysis.config_loader import AppConfig, ClassifierSettings
from scanner.capture import StubCamera, build_camera
from scanner.main import (
    apply_overrides,
    build_parser,
    format_verdict,
    parse_backend,
    parse_resolution,
    run_scan,
    run_sessions,
)


class _ConstantClassifier:
    def classify(self, image_bytes: bytes) -> ClassificationSample:
        return ClassificationSample("Real 200 Notes", 0.9)


def test_parse_resolution() -> None:
    assert parse_resolution("640x480") == (640, 480)
    assert parse_resolution(None) is None
    with pytest.raises(argparse.ArgumentTypeError):
        parse_resolution("640")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_resolution("wide x tall")


def test_parse_backend() -> None:
    assert parse_backend("700") == 700
    assert parse_backend(" dshow ") == "dshow"
    assert parse_backend("") is None
    assert parse_backend(None) is None


def test_build_classifier_selects_backend(monkeypatch) -> None:
    assert isinstance(build_classifier(ClassifierSettings(backend="heuristic")), HeuristicNoteClassifier)
    mock = build_classifier(ClassifierSettings(backend="mock", seed=1))
    assert isinstance(mock, MockNoteClassifier)
    assert mock.seed == 1
    remote = build_classifier(
        ClassifierSettings(backend="http", api_url="http://host:9000"), device_id="phone"
    )
    assert isinstance(remote, RemoteNoteClassifier)
    assert remote.base_url == "http://host:9000"
    assert remote.device_id == "phone"
    with pytest.raises(ValueError):
        build_classifier(ClassifierSettings(backend="unknown"))


def test_build_classifier_without_model_raises(tmp_path) -> None:
    settings = ClassifierSettings(
        backend="tflite",
        model_path=str(tmp_path / "missing.tflite"),
        labels_path=str(tmp_path / "labels.txt"),
    )
    with pytest.raises(RuntimeError):
        build_classifier(settings)


def test_build_camera_stub_uses_existing_sample(tmp_path) -> None:
    sample = tmp_path / "note.png"
    sample.write_bytes(b"png-bytes")
    camera = build_camera("stub", str(sample))
    frame = camera.capture()
    assert frame.data == b"png-bytes"
    assert frame.encoding == "png"
    assert isinstance(build_camera("stub", "0"), StubCamera)


def test_apply_overrides() -> None:
    args = build_parser().parse_args(
        [
            "--classifier",
            "mock",
            "--seed",
            "5",
            "--timeout",
            "0",
            "--attempts",
            "3",
            "--require-consistent-label",
            "--camera-resolution",
            "320x240",
        ]
    )
    cfg = apply_overrides(AppConfig(), args)
    assert cfg.classifier.backend == "mock"
    assert cfg.classifier.seed == 5
    assert cfg.session.timeout is None
    assert cfg.session.attempts == 3
    assert cfg.gate.require_consistent_label is True
    assert cfg.camera.resolution == (320, 240)


def test_format_verdict() -> None:
    verdict = Verdict(is_authentic=True, denomination="200 Taka", confidence=0.9)
    assert format_verdict(verdict) == "AUTHENTIC denomination=200 Taka confidence=90%"
    assert json.loads(format_verdict(verdict, as_json=True)) == {
        "is_authentic": True,
        "denomination": "200 Taka",
        "confidence": 0.9,
    }
    fake = Verdict(is_authentic=False, denomination="Unknown", confidence=0.85)
    assert format_verdict(fake).startswith("COUNTERFEIT")


def test_run_sessions_creates_fresh_gate_per_attempt(capsys) -> None:
    cfg = AppConfig()
    cfg.gate.min_sample_interval = 0.0
    cfg.session.frame_interval = 0.01
    cfg.session.timeout = 5.0
    cfg.session.attempts = 2

    verdicts = run_sessions(cfg, StubCamera(), _ConstantClassifier())

    assert len(verdicts) == 2
    output = capsys.readouterr().out
    assert output.count("AUTHENTIC denomination=200 Taka") == 2


def test_run_sessions_json_mode_prints_null_without_verdict(capsys) -> None:
    cfg = AppConfig()
    cfg.gate.min_sample_interval = 0.0
    cfg.session.frame_interval = 0.01
    cfg.session.timeout = 0.2
    cfg.session.attempts = 2

    class _LowConfidence:
        def classify(self, image_bytes: bytes) -> ClassificationSample:
            return ClassificationSample("Real 200 Notes", 0.1)

    verdicts = run_sessions(cfg, StubCamera(), _LowConfidence(), as_json=True)

    assert verdicts == []
    lines = capsys.readouterr().out.strip().splitlines()
    assert [json.loads(line) for line in lines] == [None, None]


def test_run_scan_end_to_end_with_config(tmp_path, capsys) -> None:
    config_path = tmp_path / "scanner.json"
    config_path.write_text(
        json.dumps(
            {
                "gate": {"min_sample_interval": 0.0, "confidence_threshold": 0.0},
                "session": {"frame_interval": 0.01, "timeout": 5.0},
                "classifier": {"backend": "mock", "seed": 11},
            }
        ),
        encoding="utf-8",
    )

    status = run_scan(["--config", str(config_path), "--json"])

    assert status == 0
    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["denomination"] == "200 Taka"
    assert 0.5 <= payload["confidence"] < 1.0


def test_run_scan_rejects_bad_config(tmp_path) -> None:
    config_path = tmp_path / "scanner.json"
    config_path.write_text(json.dumps({"camera": {"kind": "webcam"}}), encoding="utf-8")
    assert run_scan(["--config", str(config_path)]) == 1
