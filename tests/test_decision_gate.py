import unittest

from analysis.ai.types import ClassificationSample, Verdict
from analysis.gate import DecisionGate, GateConfig
from analysis.labels import LabelVocabulary


def _sample(confidence: float, label: str = "Real 200 Notes") -> ClassificationSample:
    return ClassificationSample(label=label, confidence=confidence)


class DecisionGateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.gate = DecisionGate(config=GateConfig())

    def test_sample_at_threshold_qualifies(self) -> None:
        self.assertIsNone(self.gate.submit(_sample(0.8), now=0.0))
        self.assertEqual(self.gate.consecutive_count, 1)

    def test_sample_just_below_threshold_does_not_qualify(self) -> None:
        self.assertIsNone(self.gate.submit(_sample(0.8 - 1e-9), now=0.0))
        self.assertEqual(self.gate.consecutive_count, 0)
        self.assertEqual(self.gate.stats.below_threshold, 1)

    def test_low_confidence_resets_run(self) -> None:
        self.assertIsNone(self.gate.submit(_sample(0.9), now=0.0))
        self.assertEqual(self.gate.consecutive_count, 1)
        self.assertIsNone(self.gate.submit(_sample(0.3), now=2.0))
        self.assertEqual(self.gate.consecutive_count, 0)
        self.assertIsNone(self.gate.submit(_sample(0.9), now=4.0))
        self.assertEqual(self.gate.consecutive_count, 1)

    def test_emits_at_required_count_then_starts_fresh(self) -> None:
        self.assertIsNone(self.gate.submit(_sample(0.85), now=0.0))
        verdict = self.gate.submit(_sample(0.9), now=1.6)
        self.assertIsNotNone(verdict)
        self.assertEqual(self.gate.consecutive_count, 0)

        self.assertIsNone(self.gate.submit(_sample(0.95), now=3.2))
        self.assertEqual(self.gate.consecutive_count, 1)
        self.assertIsNotNone(self.gate.submit(_sample(0.95), now=4.8))
        self.assertEqual(self.gate.stats.verdicts, 2)

    def test_throttled_sample_leaves_state_untouched(self) -> None:
        self.gate.submit(_sample(0.9), now=10.0)
        before = self.gate.state

        self.assertIsNone(self.gate.submit(_sample(0.99), now=10.5))

        self.assertEqual(self.gate.state, before)
        self.assertEqual(self.gate.last_sample_time, 10.0)
        self.assertEqual(self.gate.stats.throttled, 1)
        self.assertEqual(self.gate.stats.accepted, 1)

    def test_throttled_low_confidence_sample_does_not_reset(self) -> None:
        self.gate.submit(_sample(0.9), now=0.0)
        self.gate.submit(_sample(0.1), now=1.0)
        self.assertEqual(self.gate.consecutive_count, 1)
        self.assertIsNotNone(self.gate.submit(_sample(0.9), now=1.5))

    def test_first_sample_is_never_throttled(self) -> None:
        self.assertIsNone(self.gate.last_sample_time)
        self.gate.submit(_sample(0.9), now=0.0)
        self.assertEqual(self.gate.last_sample_time, 0.0)

    def test_end_to_end_scenario(self) -> None:
        gate = DecisionGate(
            config=GateConfig(
                confidence_threshold=0.8,
                required_consecutive_detections=2,
                min_sample_interval=1.5,
            )
        )
        self.assertIsNone(gate.submit(ClassificationSample("Real 200 Notes", 0.85), now=0.0))
        verdict = gate.submit(ClassificationSample("Real 200 Notes", 0.9), now=1.6)
        self.assertEqual(
            verdict, Verdict(is_authentic=True, denomination="200 Taka", confidence=0.9)
        )

    def test_mixed_labels_count_toward_same_run_by_default(self) -> None:
        self.gate.submit(_sample(0.9, "Real 200 Notes"), now=0.0)
        verdict = self.gate.submit(_sample(0.9, "Fake 200 Notes"), now=2.0)
        self.assertIsNotNone(verdict)
        self.assertFalse(verdict.is_authentic)

    def test_consistent_label_mode_restarts_run_on_label_change(self) -> None:
        gate = DecisionGate(config=GateConfig(require_consistent_label=True))
        gate.submit(_sample(0.9, "Real 200 Notes"), now=0.0)
        self.assertIsNone(gate.submit(_sample(0.9, "Fake 200 Notes"), now=2.0))
        self.assertEqual(gate.consecutive_count, 1)
        verdict = gate.submit(_sample(0.95, "fake 200 notes "), now=4.0)
        self.assertIsNotNone(verdict)
        self.assertFalse(verdict.is_authentic)

    def test_out_of_range_confidence_is_used_as_given(self) -> None:
        self.gate.submit(_sample(1.5), now=0.0)
        verdict = self.gate.submit(_sample(1.5), now=2.0)
        self.assertIsNotNone(verdict)
        self.assertEqual(verdict.confidence, 1.5)
        self.assertIsNone(self.gate.submit(_sample(-0.2), now=4.0))

    def test_empty_label_is_not_an_error(self) -> None:
        vocabulary = LabelVocabulary(fallback_denomination="200 Taka")
        gate = DecisionGate(vocabulary=vocabulary)
        gate.submit(_sample(0.9, ""), now=0.0)
        verdict = gate.submit(_sample(0.9, ""), now=2.0)
        self.assertEqual(
            verdict, Verdict(is_authentic=False, denomination="200 Taka", confidence=0.9)
        )

    def test_backwards_timestamp_is_throttled(self) -> None:
        self.gate.submit(_sample(0.9), now=5.0)
        self.assertIsNone(self.gate.submit(_sample(0.9), now=1.0))
        self.assertEqual(self.gate.stats.throttled, 1)
        self.assertEqual(self.gate.consecutive_count, 1)

    def test_reset_clears_progress_and_throttle(self) -> None:
        self.gate.submit(_sample(0.9), now=0.0)
        self.gate.reset()
        self.assertEqual(self.gate.consecutive_count, 0)
        self.assertIsNone(self.gate.last_sample_time)
        self.assertIsNone(self.gate.submit(_sample(0.9), now=0.1))
        self.assertEqual(self.gate.consecutive_count, 1)

    def test_single_detection_mode(self) -> None:
        gate = DecisionGate(config=GateConfig(required_consecutive_detections=1))
        self.assertIsNotNone(gate.submit(_sample(0.8), now=0.0))


class GateConfigTests(unittest.TestCase):
    def test_rejects_invalid_values(self) -> None:
        with self.assertRaises(ValueError):
            GateConfig(confidence_threshold=1.2)
        with self.assertRaises(ValueError):
            GateConfig(required_consecutive_detections=0)
        with self.assertRaises(ValueError):
            GateConfig(min_sample_interval=-1.0)

    def test_numeric_strings_are_coerced(self) -> None:
        config = GateConfig(
            confidence_threshold="0.9",
            required_consecutive_detections="1",
            min_sample_interval="0",
        )
        self.assertEqual(config.confidence_threshold, 0.9)
        self.assertEqual(config.required_consecutive_detections, 1)
        self.assertEqual(config.min_sample_interval, 0.0)

        gate = DecisionGate(config=config)
        self.assertIsNone(gate.submit(_sample(0.85), now=0.0))
        self.assertIsNotNone(gate.submit(_sample(0.95), now=0.0))

    def test_rejects_non_numeric_and_non_bool_values(self) -> None:
        with self.assertRaises(ValueError):
            GateConfig(confidence_threshold=None)
        with self.assertRaises(ValueError):
            GateConfig(min_sample_interval="soon")
        with self.assertRaises(ValueError):
            GateConfig(require_consistent_label="yes")

    def test_from_dict_applies_overrides(self) -> None:
        config = GateConfig.from_dict(
            {"confidence_threshold": 0.6, "required_consecutive_detections": 3}
        )
        self.assertEqual(config.confidence_threshold, 0.6)
        self.assertEqual(config.required_consecutive_detections, 3)
        self.assertEqual(config.min_sample_interval, 1.5)
        self.assertFalse(config.require_consistent_label)

    def test_from_dict_wraps_bad_types(self) -> None:
        with self.assertRaises(ValueError):
            GateConfig.from_dict({"min_sample_interval": "soon"})
        with self.assertRaises(ValueError):
            GateConfig.from_dict({"require_consistent_label": "yes"})


if __name__ == "__main__":
    unittest.main()
