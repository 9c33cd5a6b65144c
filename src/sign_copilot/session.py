"""Recognition session: one user's stream of frames through the engine.

Owns the confirmation engine and the start/stop/reset lifecycle. Frames
arrive either as raw landmark arrays or as a list of hand detections, in
which case only the highest-score hand is recognized.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from sign_copilot.classifier import GestureClassifier
from sign_copilot.config import Settings
from sign_copilot.confirmation import (
    ConfirmationConfig,
    ConfirmationEngine,
    GestureHistoryEntry,
    RecognitionState,
)
from sign_copilot.detector import HandDetection, dominant_hand
from sign_copilot.exceptions import SessionInactiveError
from sign_copilot.explanations import ExplanationBook
from sign_copilot.gestures import GestureRuleSet
from sign_copilot.interpreter import SignInterpreter
from sign_copilot.metrics import MetricsCollector
from sign_copilot.schema import SignResponse

logger = logging.getLogger("sign_copilot.session")


@dataclass
class SessionStats:
    frames: int = 0
    confirmations: int = 0
    last_label: Optional[str] = None
    last_phase: Optional[str] = None


class RecognitionSession:
    """Drives frames through classification, confirmation and explanation.

    Usage:
        session = RecognitionSession()
        session.start()
        for detections in detector.stream():
            response = session.submit(detections)
        session.stop()
    """

    def __init__(
        self,
        classifier: Optional[GestureClassifier] = None,
        config: Optional[ConfirmationConfig] = None,
        explanations: Optional[ExplanationBook] = None,
        metrics: Optional[MetricsCollector] = None,
        auto_start: bool = False,
    ):
        self.classifier = classifier or GestureClassifier()
        self.engine = ConfirmationEngine(self.classifier, config)
        self.interpreter = SignInterpreter(self.classifier, explanations)
        self.metrics = metrics
        self.stats = SessionStats()
        self._active = auto_start
        self._last_state: Optional[RecognitionState] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, metrics: Optional[MetricsCollector] = None, **kwargs
    ) -> RecognitionSession:
        """Build a session from loaded settings.

        Raises:
            MissingExplanationError: if the explanation table does not cover
                every label the configured rules can produce.
        """
        engine = settings.engine
        rules = GestureRuleSet.from_file(engine.rules_file) if engine.rules_file else None
        classifier = GestureClassifier(rules, extension_threshold=engine.extension_threshold)

        if settings.explanations_file:
            explanations = ExplanationBook.from_yaml(settings.explanations_file)
        else:
            explanations = ExplanationBook.with_defaults()
        explanations.validate_labels(classifier.labels)

        return cls(
            classifier=classifier,
            config=engine.confirmation_config(),
            explanations=explanations,
            metrics=metrics,
            **kwargs,
        )

    @property
    def active(self) -> bool:
        return self._active

    def start(self):
        """Begin accepting frames."""
        self._active = True
        logger.info("Recognition session started")

    def stop(self):
        """Stop accepting frames and drop all confirmation state."""
        self._active = False
        self.engine.reset()
        self._last_state = None
        logger.info("Recognition session stopped after %d frames", self.stats.frames)

    def reset(self):
        """Clear confirmation state and history; the session stays active."""
        self.engine.reset()
        self._last_state = None
        logger.debug("Recognition session reset")

    def submit(
        self, detections: list[HandDetection], timestamp: Optional[float] = None
    ) -> SignResponse:
        """Recognize the dominant hand among this frame's detections."""
        hand = dominant_hand(detections)
        frame = hand.landmarks if hand is not None else None
        return self.submit_frame(frame, timestamp)

    def submit_frame(self, frame: Any, timestamp: Optional[float] = None) -> SignResponse:
        """Feed one landmark frame and return the display response.

        Raises:
            SessionInactiveError: if the session has not been started.
        """
        if not self._active:
            raise SessionInactiveError("Recognition session is not active")

        t0 = time.perf_counter()
        result = self.classifier.classify(frame)
        state = self.engine.update(result, timestamp)
        response = self.interpreter.describe(state)
        elapsed = time.perf_counter() - t0

        newly_confirmed = state.confirmed and not (
            self._last_state is not None
            and self._last_state.confirmed
            and self._last_state.label == state.label
        )
        self._last_state = state

        self.stats.frames += 1
        self.stats.last_label = state.label
        self.stats.last_phase = state.phase.value
        if newly_confirmed:
            self.stats.confirmations += 1

        if self.metrics is not None:
            self.metrics.record_frame(elapsed)
            self.metrics.record_classification(result.label, valid=result.ok)
            if newly_confirmed:
                self.metrics.record_confirmation(state.label)

        return response

    @property
    def state(self) -> Optional[RecognitionState]:
        """Last display state, or None before the first frame."""
        return self._last_state

    @property
    def history(self) -> list[GestureHistoryEntry]:
        return self.engine.history
