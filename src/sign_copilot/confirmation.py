"""Temporal confirmation: debounce per-frame labels into a stable gesture.

A label only becomes the displayed result once it has been seen often enough
within a time window. Single-frame misclassifications and hand jitter never
reach the display; instead the engine reports progress toward confirmation.

Timestamps are seconds from any monotonic clock. Pass them explicitly for
deterministic replay, or omit them to sample ``time.monotonic()``.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from sign_copilot.classifier import ClassificationResult, GestureClassifier

logger = logging.getLogger("sign_copilot.confirmation")

SETTLING_LABEL = "Detecting..."
SETTLING_CONFIDENCE = 0.5
WAITING_LABEL = "Waiting for gesture..."


def in_progress_label(label: str) -> str:
    return f"Detecting {label}..."


@dataclass
class ConfirmationConfig:
    """Tuning for the confirmation state machine."""
    history_size: int = 10
    min_confidence: float = 0.7
    confirmation_count: int = 3
    confirmation_window: float = 1.5  # seconds from first sighting
    grace_period: float = 0.5  # seconds after a candidate change
    confirmation_bonus: float = 0.1

    def __post_init__(self):
        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")
        if self.confirmation_count < 1:
            raise ValueError("confirmation_count must be at least 1")
        if self.confirmation_window < 0 or self.grace_period < 0:
            raise ValueError("time windows must be non-negative")


class DisplayPhase(Enum):
    CONFIRMED = "confirmed"
    SETTLING = "settling"  # grace period right after a candidate change
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"


@dataclass
class GestureCandidate:
    """The label currently being tracked for confirmation."""
    label: str
    confidence: float  # running max
    count: int
    first_seen: float


@dataclass(frozen=True)
class GestureHistoryEntry:
    label: str
    confidence: float
    timestamp: float


@dataclass(frozen=True)
class RecognitionState:
    """Display state emitted once per processed frame."""
    label: str
    confidence: float
    phase: DisplayPhase
    timestamp: float

    @property
    def confirmed(self) -> bool:
        return self.phase is DisplayPhase.CONFIRMED

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "confidence": round(self.confidence, 4),
            "phase": self.phase.value,
            "timestamp": self.timestamp,
        }


def _coerce_timestamp(timestamp: Any) -> float:
    if timestamp is None:
        return time.monotonic()
    if isinstance(timestamp, (str, bytes, bool)):
        raise ValueError(f"timestamp must be a number, got {timestamp!r}")
    try:
        now = float(timestamp)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"timestamp must be a number, got {timestamp!r}") from e
    if not math.isfinite(now):
        raise ValueError(f"timestamp must be finite, got {timestamp!r}")
    return now


class ConfirmationEngine:
    """Stateful debouncer for one recognition session.

    Each call to ``update`` runs one step of the state machine:

    1. Detection: a confident, known label either reinforces the current
       candidate or replaces it with a fresh one.
    2. Expiry: a candidate older than the confirmation window is dropped.
    3. Confirmation: a candidate seen ``confirmation_count`` times is
       reported as confirmed, with a small confidence bonus. It stays
       confirmed until it expires, is replaced, or the engine is reset.
    4. Otherwise the engine reports a settling, in-progress, or waiting state.

    The raw classification result is then appended to a bounded history.

    Transitions are serialized with a lock; separate sessions should use
    separate engines.
    """

    def __init__(
        self,
        classifier: Optional[GestureClassifier] = None,
        config: Optional[ConfirmationConfig] = None,
    ):
        self.classifier = classifier or GestureClassifier()
        self.config = config or ConfirmationConfig()
        self._history: deque[GestureHistoryEntry] = deque(maxlen=self.config.history_size)
        self._candidate: Optional[GestureCandidate] = None
        self._last_change: Optional[float] = None
        self._announced = False
        self._lock = threading.Lock()

    def process_frame(self, frame: Any, timestamp: Optional[float] = None) -> RecognitionState:
        """Classify a raw landmark frame and feed the result to the engine."""
        return self.update(self.classifier.classify(frame), timestamp)

    def update(
        self, result: ClassificationResult, timestamp: Optional[float] = None
    ) -> RecognitionState:
        """Advance the state machine by one classification result.

        Raises:
            ValueError: if ``timestamp`` is not a finite number. The engine
                state is left untouched.
        """
        now = _coerce_timestamp(timestamp)
        cfg = self.config

        with self._lock:
            self._detect(result, now)

            candidate = self._candidate
            if candidate is not None and now - candidate.first_seen > cfg.confirmation_window:
                logger.debug(
                    "Candidate %s expired after %d sightings", candidate.label, candidate.count
                )
                self._candidate = candidate = None

            if candidate is not None and candidate.count >= cfg.confirmation_count:
                if not self._announced:
                    logger.info(
                        "Confirmed %s (confidence %.2f)", candidate.label, candidate.confidence
                    )
                    self._announced = True
                state = RecognitionState(
                    label=candidate.label,
                    confidence=min(candidate.confidence + cfg.confirmation_bonus, 1.0),
                    phase=DisplayPhase.CONFIRMED,
                    timestamp=now,
                )
            elif (
                candidate is not None
                and self._last_change is not None
                and now - self._last_change < cfg.grace_period
            ):
                state = RecognitionState(
                    SETTLING_LABEL, SETTLING_CONFIDENCE, DisplayPhase.SETTLING, now
                )
            elif candidate is not None:
                state = RecognitionState(
                    label=in_progress_label(candidate.label),
                    confidence=candidate.confidence * candidate.count / cfg.confirmation_count,
                    phase=DisplayPhase.IN_PROGRESS,
                    timestamp=now,
                )
            else:
                state = RecognitionState(WAITING_LABEL, 0.0, DisplayPhase.WAITING, now)

            self._history.append(GestureHistoryEntry(result.label, result.confidence, now))

        return state

    def _detect(self, result: ClassificationResult, now: float):
        if not result.ok or result.is_unknown:
            return
        if result.confidence < self.config.min_confidence:
            return

        candidate = self._candidate
        if candidate is not None and candidate.label == result.label:
            candidate.count += 1
            candidate.confidence = max(candidate.confidence, result.confidence)
            return

        logger.debug("New candidate %s (%.2f)", result.label, result.confidence)
        self._candidate = GestureCandidate(
            label=result.label,
            confidence=result.confidence,
            count=1,
            first_seen=now,
        )
        self._last_change = now
        self._announced = False

    def reset(self):
        """Return to idle: clear history, candidate and change time."""
        with self._lock:
            self._history.clear()
            self._candidate = None
            self._last_change = None
            self._announced = False

    @property
    def history(self) -> list[GestureHistoryEntry]:
        """Recent raw results, oldest first."""
        with self._lock:
            return list(self._history)

    @property
    def candidate(self) -> Optional[GestureCandidate]:
        with self._lock:
            return replace(self._candidate) if self._candidate else None

    @property
    def last_change(self) -> Optional[float]:
        return self._last_change
