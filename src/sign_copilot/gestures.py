"""Gesture rule system: hand features and the ordered classification cascade."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np
import yaml

# Landmark indices (MediaPipe Hands convention)
WRIST = 0
THUMB_IP, THUMB_TIP = 3, 4
INDEX_PIP, INDEX_TIP = 6, 8
MIDDLE_PIP, MIDDLE_TIP = 10, 12
RING_PIP, RING_TIP = 14, 16
PINKY_PIP, PINKY_TIP = 18, 20

EXTENSION_THRESHOLD = 0.02

UNKNOWN_GESTURE = "Unknown Gesture"
UNKNOWN_CONFIDENCE = 0.25


class FingerState(Enum):
    """Binary finger state based on landmark positions."""
    EXTENDED = "extended"
    CURLED = "curled"
    ANY = "any"  # don't care


@dataclass(frozen=True)
class HandFeatures:
    """Geometric features of a single frame.

    Finger extension uses image coordinates (y grows downward): a finger is
    extended when its tip sits above its PIP joint by more than the extension
    threshold. The thumb is extended when its tip sits to the right of the
    IP joint by the same margin. Distances are measured in the image plane.
    """

    thumb: bool
    index: bool
    middle: bool
    ring: bool
    pinky: bool
    hand_size: float
    finger_spread: float
    openness: float
    thumb_index_distance: float
    curvature: float

    @property
    def fingers(self) -> tuple[bool, bool, bool, bool]:
        return (self.index, self.middle, self.ring, self.pinky)

    @property
    def extended_fingers(self) -> int:
        """Number of extended fingers, thumb excluded."""
        return sum(self.fingers)

    def state(self, finger: str) -> FingerState:
        return FingerState.EXTENDED if getattr(self, finger) else FingerState.CURLED


def _planar_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(math.hypot(a[0] - b[0], a[1] - b[1]))


def extract_features(
    landmarks: np.ndarray, threshold: float = EXTENSION_THRESHOLD
) -> HandFeatures:
    """Compute hand features from a validated frame.

    Args:
        landmarks: Frame landmarks, shape (21, 3).
        threshold: Minimum tip/joint offset for a finger to count as extended.

    Returns:
        HandFeatures for the frame.
    """
    lm = landmarks

    def extended(tip: int, pip: int) -> bool:
        return bool(lm[pip][1] - lm[tip][1] > threshold)

    hand_size = _planar_distance(lm[THUMB_TIP], lm[PINKY_TIP])
    spread = _planar_distance(lm[INDEX_TIP], lm[PINKY_TIP])
    openness = spread / hand_size if hand_size > 0 else 0.0

    curvature = float(
        abs(lm[INDEX_TIP][1] - lm[INDEX_PIP][1])
        + abs(lm[MIDDLE_TIP][1] - lm[MIDDLE_PIP][1])
    )

    return HandFeatures(
        thumb=bool(lm[THUMB_TIP][0] - lm[THUMB_IP][0] > threshold),
        index=extended(INDEX_TIP, INDEX_PIP),
        middle=extended(MIDDLE_TIP, MIDDLE_PIP),
        ring=extended(RING_TIP, RING_PIP),
        pinky=extended(PINKY_TIP, PINKY_PIP),
        hand_size=hand_size,
        finger_spread=spread,
        openness=openness,
        thumb_index_distance=_planar_distance(lm[THUMB_TIP], lm[INDEX_TIP]),
        curvature=curvature,
    )


_FINGERS = ("thumb", "index", "middle", "ring", "pinky")


@dataclass
class GestureRule:
    """One step of the classification cascade.

    A rule matches when every finger whose state is not ANY agrees with the
    frame and every optional geometric bound holds. Bounds are strict.
    """

    name: str
    confidence: float
    thumb: FingerState = FingerState.ANY
    index: FingerState = FingerState.ANY
    middle: FingerState = FingerState.ANY
    ring: FingerState = FingerState.ANY
    pinky: FingerState = FingerState.ANY
    min_openness: Optional[float] = None
    max_thumb_index_distance: Optional[float] = None
    min_curvature: Optional[float] = None
    min_extended_fingers: Optional[int] = None
    description: str = ""

    def matches(self, features: HandFeatures) -> bool:
        for finger in _FINGERS:
            expected = getattr(self, finger)
            if expected != FingerState.ANY and features.state(finger) != expected:
                return False

        if self.min_openness is not None and not features.openness > self.min_openness:
            return False
        if (
            self.max_thumb_index_distance is not None
            and not features.thumb_index_distance < self.max_thumb_index_distance
        ):
            return False
        if self.min_curvature is not None and not features.curvature > self.min_curvature:
            return False
        if (
            self.min_extended_fingers is not None
            and features.extended_fingers < self.min_extended_fingers
        ):
            return False
        return True

    def to_dict(self) -> dict:
        data: dict = {
            "name": self.name,
            "confidence": self.confidence,
            "fingers": {f: getattr(self, f).value for f in _FINGERS},
        }
        for key in (
            "min_openness",
            "max_thumb_index_distance",
            "min_curvature",
            "min_extended_fingers",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict) -> GestureRule:
        fingers = data.get("fingers", {})
        confidence = float(data["confidence"])
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Rule {data['name']!r}: confidence {confidence} outside [0, 1]")
        return cls(
            name=data["name"],
            confidence=confidence,
            **{f: FingerState(fingers.get(f, "any")) for f in _FINGERS},
            min_openness=data.get("min_openness"),
            max_thumb_index_distance=data.get("max_thumb_index_distance"),
            min_curvature=data.get("min_curvature"),
            min_extended_fingers=data.get("min_extended_fingers"),
            description=data.get("description", ""),
        )


@dataclass
class GestureRuleSet:
    """Ordered cascade of gesture rules; the first matching rule wins.

    Order is load-bearing: several rules overlap geometrically, so narrower
    rules must come before the broad fallbacks.
    """

    rules: list[GestureRule] = field(default_factory=list)

    def register(self, rule: GestureRule):
        """Append a rule at the lowest priority."""
        self.rules.append(rule)

    def match(self, features: HandFeatures) -> Optional[GestureRule]:
        """Return the highest-priority rule matching the features, or None."""
        for rule in self.rules:
            if rule.matches(features):
                return rule
        return None

    def match_all(self, features: HandFeatures) -> list[GestureRule]:
        """Every matching rule, in priority order."""
        return [rule for rule in self.rules if rule.matches(features)]

    @property
    def labels(self) -> list[str]:
        """Distinct labels this cascade can produce, in first-seen order."""
        seen: dict[str, None] = {}
        for rule in self.rules:
            seen.setdefault(rule.name, None)
        return list(seen)

    def load_from_file(self, path: str | Path):
        """Append rules from a YAML file with a top-level ``gestures`` list."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        for entry in data.get("gestures", []):
            self.register(GestureRule.from_dict(entry))

    def save_to_file(self, path: str | Path):
        data = {"gestures": [r.to_dict() for r in self.rules]}
        with open(path, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False)

    @classmethod
    def from_file(cls, path: str | Path) -> GestureRuleSet:
        rule_set = cls()
        rule_set.load_from_file(path)
        return rule_set

    @classmethod
    def with_defaults(cls) -> GestureRuleSet:
        """Create the built-in cascade."""
        E, C = FingerState.EXTENDED, FingerState.CURLED
        rule_set = cls()

        rule_set.register(GestureRule(
            name="Closed Fist", confidence=0.95,
            thumb=C, index=C, middle=C, ring=C, pinky=C,
        ))
        rule_set.register(GestureRule(
            name="Open Hand", confidence=0.92,
            thumb=E, index=E, middle=E, ring=E, pinky=E,
            min_openness=0.6,
        ))
        rule_set.register(GestureRule(
            name="Stop Sign", confidence=0.90,
            thumb=C, index=E, middle=E, ring=E, pinky=E,
            min_openness=0.5,
        ))
        rule_set.register(GestureRule(
            name="Pointing", confidence=0.88,
            thumb=C, index=E, middle=C, ring=C, pinky=C,
        ))
        rule_set.register(GestureRule(
            name="Peace Sign", confidence=0.87,
            thumb=C, index=E, middle=E, ring=C, pinky=C,
        ))
        rule_set.register(GestureRule(
            name="Thumbs Up", confidence=0.93,
            thumb=E, index=C, middle=C, ring=C, pinky=C,
        ))
        rule_set.register(GestureRule(
            name="OK Sign", confidence=0.89,
            thumb=E, index=E, middle=C, ring=C, pinky=C,
            max_thumb_index_distance=0.1,
        ))
        # Shadowed by Open Hand / Stop Sign in this order.
        rule_set.register(GestureRule(
            name="Wave", confidence=0.82,
            index=E, middle=E, ring=E, pinky=E,
            min_openness=0.7, min_curvature=0.1,
        ))
        rule_set.register(GestureRule(
            name="Open Hand", confidence=0.80,
            min_extended_fingers=3, min_openness=0.4,
            description="broad openness fallback",
        ))
        rule_set.register(GestureRule(
            name="Peace Sign", confidence=0.85,
            index=E, middle=E, ring=C, pinky=C,
            description="two-finger fallback",
        ))
        rule_set.register(GestureRule(
            name="Pointing", confidence=0.83,
            index=E, middle=C, ring=C, pinky=C,
            description="one-finger fallback",
        ))

        return rule_set

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)
