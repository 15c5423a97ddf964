from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from .ai.types import ClassificationSample, Verdict
from .labels import DEFAULT_VOCABULARY, LabelVocabulary, build_verdict

logger = logging.getLogger(__name__)


@dataclass
class GateConfig:
    confidence_threshold: float = 0.8
    required_consecutive_detections: int = 2
    min_sample_interval: float = 1.5
    # Off by default: any qualifying labels extend the same run.
    require_consistent_label: bool = False

    def __post_init__(self) -> None:
        try:
            self.confidence_threshold = float(self.confidence_threshold)
            self.required_consecutive_detections = int(self.required_consecutive_detections)
            self.min_sample_interval = float(self.min_sample_interval)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid gate configuration: {exc}") from exc
        if not isinstance(self.require_consistent_label, bool):
            raise ValueError("require_consistent_label must be true or false")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(
                f"confidence_threshold must be within [0, 1], got {self.confidence_threshold!r}"
            )
        if self.required_consecutive_detections < 1:
            raise ValueError(
                "required_consecutive_detections must be at least 1, "
                f"got {self.required_consecutive_detections!r}"
            )
        if self.min_sample_interval < 0:
            raise ValueError(
                f"min_sample_interval must not be negative, got {self.min_sample_interval!r}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GateConfig:
        defaults = cls()
        consistent = data.get("require_consistent_label", defaults.require_consistent_label)
        if not isinstance(consistent, bool):
            raise ValueError("gate.require_consistent_label must be true or false")
        return cls(
            confidence_threshold=data.get(
                "confidence_threshold", defaults.confidence_threshold
            ),
            required_consecutive_detections=data.get(
                "required_consecutive_detections",
                defaults.required_consecutive_detections,
            ),
            min_sample_interval=data.get("min_sample_interval", defaults.min_sample_interval),
            require_consistent_label=consistent,
        )


@dataclass
class DecisionGateState:
    consecutive_high_confidence_count: int = 0
    last_sample_time: float | None = None
    run_label: str | None = None


@dataclass
class GateStats:
    accepted: int = 0
    throttled: int = 0
    below_threshold: int = 0
    verdicts: int = 0


@dataclass
class DecisionGate:
    """Turn a stream of per-frame classifications into at most one verdict per run.

    Callers must serialise ``submit`` and pass non-decreasing timestamps.
    Confidence values are used exactly as given; clamping to [0, 1] is the
    caller's job. A timestamp earlier than the last accepted one produces a
    negative delta and the sample is throttled.
    """

    config: GateConfig = field(default_factory=GateConfig)
    vocabulary: LabelVocabulary = DEFAULT_VOCABULARY
    _state: DecisionGateState = field(init=False, default_factory=DecisionGateState)
    _stats: GateStats = field(init=False, default_factory=GateStats)

    def submit(self, sample: ClassificationSample, now: float) -> Verdict | None:
        state = self._state
        last = state.last_sample_time
        if last is not None and now - last < self.config.min_sample_interval:
            self._stats.throttled += 1
            logger.debug(
                "Throttled sample label=%r delta=%.3fs interval=%.3fs",
                sample.label,
                now - last,
                self.config.min_sample_interval,
            )
            return None

        state.last_sample_time = now
        self._stats.accepted += 1

        if sample.confidence < self.config.confidence_threshold:
            if state.consecutive_high_confidence_count:
                logger.debug(
                    "Low confidence %.3f; resetting run of %d",
                    sample.confidence,
                    state.consecutive_high_confidence_count,
                )
            self._stats.below_threshold += 1
            state.consecutive_high_confidence_count = 0
            state.run_label = None
            return None

        label_key = sample.label.strip().lower()
        if (
            self.config.require_consistent_label
            and state.consecutive_high_confidence_count
            and state.run_label != label_key
        ):
            logger.debug(
                "Label changed from %r to %r; restarting run", state.run_label, label_key
            )
            state.consecutive_high_confidence_count = 0
        if not state.consecutive_high_confidence_count:
            state.run_label = label_key
        state.consecutive_high_confidence_count += 1
        logger.debug(
            "High confidence detection #%d label=%r confidence=%.3f",
            state.consecutive_high_confidence_count,
            sample.label,
            sample.confidence,
        )

        if state.consecutive_high_confidence_count < self.config.required_consecutive_detections:
            return None

        verdict = build_verdict(sample, self.vocabulary)
        state.consecutive_high_confidence_count = 0
        state.run_label = None
        self._stats.verdicts += 1
        logger.info(
            "Verdict authentic=%s denomination=%s confidence=%.3f",
            verdict.is_authentic,
            verdict.denomination,
            verdict.confidence,
        )
        return verdict

    def reset(self) -> None:
        self._state = DecisionGateState()

    @property
    def consecutive_count(self) -> int:
        return self._state.consecutive_high_confidence_count

    @property
    def last_sample_time(self) -> float | None:
        return self._state.last_sample_time

    @property
    def state(self) -> DecisionGateState:
        return replace(self._state)

    @property
    def stats(self) -> GateStats:
        return replace(self._stats)


__all__ = ["DecisionGate", "DecisionGateState", "GateConfig", "GateStats"]
