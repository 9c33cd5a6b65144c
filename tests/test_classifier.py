"""Tests for frame validation and single-frame classification."""

import math

import numpy as np
import pytest

from sign_copilot.classifier import (
    ClassificationResult,
    FrameStatus,
    GestureClassifier,
    validate_frame,
)
from sign_copilot.detector import SimulatedHandDetector
from sign_copilot.gestures import GestureRule, GestureRuleSet


def template(gesture):
    return SimulatedHandDetector(noise=0.0).template(gesture)


@pytest.fixture
def classifier():
    return GestureClassifier()


class TestValidation:
    def test_missing_frame(self):
        assert validate_frame(None) is FrameStatus.NO_HAND
        assert validate_frame([]) is FrameStatus.NO_HAND

    def test_wrong_point_count(self):
        assert validate_frame([[0.0, 0.0, 0.0]] * 20) is FrameStatus.INVALID_LANDMARKS
        assert validate_frame(np.zeros((22, 3))) is FrameStatus.INVALID_LANDMARKS

    def test_not_a_sequence(self):
        assert validate_frame(5) is FrameStatus.INVALID_LANDMARKS

    def test_non_finite_coordinate(self):
        frame = template("fist").tolist()
        frame[7][1] = math.nan
        assert validate_frame(frame) is FrameStatus.INVALID_DATA
        frame[7][1] = math.inf
        assert validate_frame(frame) is FrameStatus.INVALID_DATA

    def test_non_numeric_coordinate(self):
        frame = template("fist").tolist()
        frame[3] = [0.1, "0.2", 0.0]
        assert validate_frame(frame) is FrameStatus.INVALID_DATA
        frame[3] = [0.1, True, 0.0]
        assert validate_frame(frame) is FrameStatus.INVALID_DATA

    def test_oversized_integer_coordinate(self):
        frame = [[0.5, 0.5, 0.0]] * 20 + [[10**400, 0.5, 0.0]]
        assert validate_frame(frame) is FrameStatus.INVALID_DATA
        result = GestureClassifier().classify(frame)
        assert result.label == "Invalid Data"
        assert result.confidence == 0.0

    def test_short_landmark(self):
        frame = template("fist").tolist()
        frame[0] = [0.5, 0.7]
        assert validate_frame(frame) is FrameStatus.INVALID_DATA

    def test_numpy_and_lists_accepted(self):
        assert validate_frame(template("open")) is FrameStatus.OK
        assert validate_frame(template("open").astype(np.float32)) is FrameStatus.OK
        assert validate_frame(template("open").tolist()) is FrameStatus.OK


class TestClassification:
    def test_no_hand(self, classifier):
        result = classifier.classify(None)
        assert result.label == "No Hand Detected"
        assert result.confidence == 0.0
        assert not result.ok

    def test_invalid_landmarks(self, classifier):
        result = classifier.classify([[0.0, 0.0, 0.0]] * 5)
        assert result.label == "Invalid Landmarks"
        assert result.status is FrameStatus.INVALID_LANDMARKS

    def test_invalid_data(self, classifier):
        frame = template("open").tolist()
        frame[12] = [None, None, None]
        result = classifier.classify(frame)
        assert result.label == "Invalid Data"
        assert result.confidence == 0.0

    def test_closed_fist(self, classifier):
        result = classifier.classify(template("fist"))
        assert result == ClassificationResult("Closed Fist", 0.95)
        assert result.ok

    def test_pointing(self, classifier):
        result = classifier.classify(template("point").tolist())
        assert result.label == "Pointing"
        assert result.confidence == pytest.approx(0.88)

    @pytest.mark.parametrize("gesture,label", [
        ("open", "Open Hand"),
        ("stop", "Stop Sign"),
        ("peace", "Peace Sign"),
        ("thumbs_up", "Thumbs Up"),
        ("ok", "OK Sign"),
        ("wave", "Open Hand"),
    ])
    def test_simulated_shapes(self, classifier, gesture, label):
        assert classifier.classify(template(gesture)).label == label

    def test_unknown_gesture(self, classifier):
        lm = template("fist")
        lm[12, 1] = 0.40  # middle finger only
        result = classifier.classify(lm)
        assert result.label == "Unknown Gesture"
        assert result.confidence == pytest.approx(0.25)
        assert result.ok and result.is_unknown

    def test_deterministic(self, classifier):
        lm = template("peace")
        assert classifier.classify(lm) == classifier.classify(lm.copy())

    def test_alternatives(self, classifier):
        result, alternatives = classifier.classify_with_alternatives(template("open"))
        assert result.label == "Open Hand"
        assert [a.label for a in alternatives] == ["Wave"]
        assert alternatives[0].confidence == pytest.approx(0.82)

    def test_alternatives_empty_for_rejected_frames(self, classifier):
        result, alternatives = classifier.classify_with_alternatives(None)
        assert result.status is FrameStatus.NO_HAND
        assert alternatives == []

    def test_labels_include_sentinels(self, classifier):
        labels = classifier.labels
        assert labels[0] == "Closed Fist"
        for sentinel in ("Unknown Gesture", "No Hand Detected", "Invalid Landmarks", "Invalid Data"):
            assert sentinel in labels

    def test_custom_rules(self):
        rules = GestureRuleSet([GestureRule(name="Anything", confidence=0.5)])
        classifier = GestureClassifier(rules)
        assert classifier.classify(template("fist")).label == "Anything"

    def test_extract_features_rejects_invalid(self, classifier):
        assert classifier.extract_features(None) is None
        assert classifier.extract_features(template("fist")).extended_fingers == 0

    def test_result_dict(self, classifier):
        assert classifier.classify(None).to_dict() == {
            "label": "No Hand Detected", "confidence": 0.0, "status": "no_hand",
        }
