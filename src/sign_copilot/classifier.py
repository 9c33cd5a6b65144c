"""Frame classification: validate a landmark frame and run the rule cascade."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Optional

import numpy as np

from sign_copilot.gestures import (
    EXTENSION_THRESHOLD,
    UNKNOWN_CONFIDENCE,
    UNKNOWN_GESTURE,
    GestureRuleSet,
    HandFeatures,
    extract_features,
)

logger = logging.getLogger("sign_copilot.classifier")

NUM_LANDMARKS = 21
LANDMARK_DIM = 3


class FrameStatus(Enum):
    """Outcome of frame validation. Non-OK values carry their sentinel label."""
    OK = "ok"
    NO_HAND = "No Hand Detected"
    INVALID_LANDMARKS = "Invalid Landmarks"
    INVALID_DATA = "Invalid Data"


@dataclass(frozen=True)
class ClassificationResult:
    """Per-frame classification: a gesture label or a tagged validation failure."""
    label: str
    confidence: float
    status: FrameStatus = FrameStatus.OK

    @property
    def ok(self) -> bool:
        return self.status is FrameStatus.OK

    @property
    def is_unknown(self) -> bool:
        return self.ok and self.label == UNKNOWN_GESTURE

    @classmethod
    def rejected(cls, status: FrameStatus) -> ClassificationResult:
        return cls(label=status.value, confidence=0.0, status=status)

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "status": self.status.name.lower(),
        }


def _is_coordinate(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:  # int beyond float range
        return False


def _is_landmark(point: Any) -> bool:
    if isinstance(point, (str, bytes)):
        return False
    try:
        if len(point) < LANDMARK_DIM:
            return False
        return all(_is_coordinate(c) for c in point)
    except TypeError:
        return False


def validate_frame(frame: Any) -> FrameStatus:
    """Check a frame against the 21-point, 3-coordinate convention.

    Checks run in order: missing/empty, wrong point count, bad coordinates.
    """
    if frame is None:
        return FrameStatus.NO_HAND
    try:
        count = len(frame)
    except TypeError:
        return FrameStatus.INVALID_LANDMARKS
    if count == 0:
        return FrameStatus.NO_HAND
    if count != NUM_LANDMARKS:
        return FrameStatus.INVALID_LANDMARKS
    if not all(_is_landmark(point) for point in frame):
        return FrameStatus.INVALID_DATA
    return FrameStatus.OK


def to_landmark_array(frame: Any) -> np.ndarray:
    """Convert a validated frame to a float array of shape (21, 3)."""
    return np.array([list(point)[:LANDMARK_DIM] for point in frame], dtype=np.float64)


class GestureClassifier:
    """Classifies a single frame of hand landmarks.

    Pure and stateless: the same frame always yields the same result, and
    one instance may be shared across threads. Malformed input never raises;
    it degrades to a FrameStatus-tagged result with confidence 0.0.
    """

    def __init__(
        self,
        rules: Optional[GestureRuleSet] = None,
        extension_threshold: float = EXTENSION_THRESHOLD,
    ):
        self._rules = rules or GestureRuleSet.with_defaults()
        self.extension_threshold = extension_threshold

    @property
    def rules(self) -> GestureRuleSet:
        return self._rules

    @property
    def labels(self) -> list[str]:
        """Every label this classifier can emit, sentinels included."""
        labels = self._rules.labels + [UNKNOWN_GESTURE]
        labels.extend(s.value for s in FrameStatus if s is not FrameStatus.OK)
        return labels

    def extract_features(self, frame: Any) -> Optional[HandFeatures]:
        """Features for a valid frame, or None when the frame is rejected."""
        if validate_frame(frame) is not FrameStatus.OK:
            return None
        return extract_features(to_landmark_array(frame), self.extension_threshold)

    def classify(self, frame: Any) -> ClassificationResult:
        return self.classify_with_alternatives(frame)[0]

    def classify_with_alternatives(
        self, frame: Any
    ) -> tuple[ClassificationResult, list[ClassificationResult]]:
        """Classify a frame and also report lower-priority matching rules.

        Returns:
            (result, alternatives). Alternatives are the other matching rules
            in cascade order, excluding repeats of the winning label.
        """
        status = validate_frame(frame)
        if status is not FrameStatus.OK:
            logger.debug("Frame rejected: %s", status.value)
            return ClassificationResult.rejected(status), []

        features = extract_features(to_landmark_array(frame), self.extension_threshold)
        matched = self._rules.match_all(features)
        if not matched:
            return ClassificationResult(UNKNOWN_GESTURE, UNKNOWN_CONFIDENCE), []

        best = matched[0]
        seen = {best.name}
        alternatives = []
        for rule in matched[1:]:
            if rule.name in seen:
                continue
            seen.add(rule.name)
            alternatives.append(ClassificationResult(rule.name, rule.confidence))

        return ClassificationResult(best.name, best.confidence), alternatives
