"""Landmark sources: MediaPipe hand detection and a simulated stand-in."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None

logger = logging.getLogger("sign_copilot.detector")


@dataclass
class HandDetection:
    """One detected hand: 21 landmarks plus detector metadata."""
    landmarks: np.ndarray  # shape (21, 3)
    handedness: str = "Right"
    score: float = 1.0

    def to_list(self) -> list[list[float]]:
        return np.asarray(self.landmarks).tolist()


def dominant_hand(detections: list[HandDetection]) -> Optional[HandDetection]:
    """Pick the highest-score detection; earlier wins on ties."""
    if not detections:
        return None
    best = detections[0]
    for det in detections[1:]:
        if det.score > best.score:
            best = det
    return best


class HandDetector:
    """Extracts 21 3D hand landmarks per hand using MediaPipe Hands.

    Each landmark is (x, y, z) with x and y normalized to [0, 1] relative to
    image dimensions, y growing downward.
    """

    NUM_LANDMARKS = 21
    LANDMARK_DIM = 3  # x, y, z

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        static_image_mode: bool = False,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install sign-copilot[camera]"
            )

        self.max_hands = max_hands
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=static_image_mode,
            max_num_hands=max_hands,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame_rgb: np.ndarray) -> list[HandDetection]:
        """Detect hands in an RGB image (H, W, 3), uint8.

        Returns:
            One HandDetection per hand; empty list if no hands detected.
        """
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return []

        handedness = results.multi_handedness or []
        hands = []
        for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
            landmarks = np.array(
                [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
                dtype=np.float32,
            )
            label, score = "Right", 1.0
            if i < len(handedness):
                category = handedness[i].classification[0]
                label, score = category.label, float(category.score)
            hands.append(HandDetection(landmarks=landmarks, handedness=label, score=score))

        return hands

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# Finger columns (x) and joint heights (y) for the simulated right hand.
_FINGER_BASES = {
    # name: (first landmark index, column x, spread tip x)
    "index": (5, 0.46, 0.42),
    "middle": (9, 0.50, 0.49),
    "ring": (13, 0.54, 0.56),
    "pinky": (17, 0.58, 0.64),
}
_EXTENDED_Y = (0.55, 0.47, 0.42, 0.37)  # MCP, PIP, DIP, TIP
_CURLED_Y = (0.55, 0.50, 0.54, 0.56)

# Which fingers are extended for each simulated gesture.
SIMULATED_GESTURES: dict[str, set[str]] = {
    "fist": set(),
    "open": {"thumb", "index", "middle", "ring", "pinky"},
    "stop": {"index", "middle", "ring", "pinky"},
    "point": {"index"},
    "peace": {"index", "middle"},
    "thumbs_up": {"thumb"},
    "ok": {"thumb", "index"},
    "wave": {"thumb", "index", "middle", "ring", "pinky"},
    "none": set(),
}


class SimulatedHandDetector:
    """Generates plausible landmark frames for named gesture shapes.

    Useful when no camera or MediaPipe install is available. Frames are
    built from a fixed right-hand template plus bounded uniform noise,
    drawn from a seeded generator so runs are reproducible.
    """

    GESTURES = tuple(SIMULATED_GESTURES)

    def __init__(self, seed: Optional[int] = None, noise: float = 0.01):
        self._rng = np.random.default_rng(seed)
        self.noise = noise
        self._wave_phase = 0

    def template(self, gesture: str) -> np.ndarray:
        """Noise-free landmarks for a gesture shape, shape (21, 3)."""
        if gesture not in SIMULATED_GESTURES:
            raise ValueError(
                f"Unknown simulated gesture {gesture!r}; expected one of {', '.join(self.GESTURES)}"
            )
        extended = SIMULATED_GESTURES[gesture]
        lm = np.zeros((21, 3), dtype=np.float64)
        lm[:, 2] = 0.1

        lm[0, :2] = (0.50, 0.70)  # wrist
        lm[1, :2] = (0.43, 0.65)
        lm[2, :2] = (0.40, 0.60)
        lm[3, :2] = (0.37, 0.56)
        if "thumb" not in extended:
            lm[4, :2] = (0.35, 0.58)
        elif gesture == "ok":
            lm[4, :2] = (0.44, 0.42)  # pinched against the index tip
        else:
            lm[4, :2] = (0.45, 0.50)

        for finger, (base, column, tip_x) in _FINGER_BASES.items():
            if finger in extended:
                heights = _EXTENDED_Y
                xs = np.linspace(column, tip_x, 4)
            else:
                heights = _CURLED_Y
                xs = np.full(4, column)
            for j in range(4):
                lm[base + j, :2] = (xs[j], heights[j])

        return lm

    def frame(self, gesture: str) -> np.ndarray:
        """Template plus noise for one frame.

        Successive ``wave`` frames sway left and right of the template.
        """
        lm = self.template(gesture)
        if gesture == "wave":
            self._wave_phase ^= 1
            lm[:, 0] += 0.05 if self._wave_phase else -0.05
        lm[:, :2] += self._rng.uniform(-self.noise, self.noise, size=(21, 2))
        lm[:, 2] += self._rng.uniform(-self.noise / 2, self.noise / 2, size=21)
        return lm.astype(np.float32)

    def random_gesture(self) -> str:
        return str(self._rng.choice(self.GESTURES))

    def detect(
        self, frame_rgb: Optional[np.ndarray] = None, gesture: Optional[str] = None
    ) -> list[HandDetection]:
        """Produce detections for one simulated frame.

        The image argument is ignored; it keeps the HandDetector signature.
        A random gesture is used when none is given. ``"none"`` yields no hands.
        """
        gesture = gesture or self.random_gesture()
        if gesture == "none":
            return []
        score = 0.85 + float(self._rng.random()) * 0.15
        return [HandDetection(landmarks=self.frame(gesture), handedness="Right", score=score)]

    def stream(
        self,
        gestures: Optional[list[str]] = None,
        count: Optional[int] = None,
        hold: int = 1,
    ) -> Iterator[list[HandDetection]]:
        """Yield detections per frame.

        Each gesture is held for ``hold`` consecutive frames. Gestures cycle
        through ``gestures`` if given, otherwise they are drawn at random.
        """
        if hold < 1:
            raise ValueError("hold must be at least 1")
        produced = 0
        gesture = None
        while count is None or produced < count:
            if produced % hold == 0:
                if gestures:
                    gesture = gestures[(produced // hold) % len(gestures)]
                else:
                    gesture = self.random_gesture()
            yield self.detect(gesture=gesture)
            produced += 1

    def close(self):
        logger.debug("Simulated detector closed")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
