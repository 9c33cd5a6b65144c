"""Build validated sign responses from classifications and engine states."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from sign_copilot.classifier import ClassificationResult, GestureClassifier
from sign_copilot.confirmation import DisplayPhase, RecognitionState
from sign_copilot.exceptions import InterpretationError
from sign_copilot.explanations import ExplanationBook
from sign_copilot.schema import SignResponse, SignResult

logger = logging.getLogger("sign_copilot.interpreter")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SignInterpreter:
    """Attaches explanations to recognized labels.

    Raw classifications and confirmed gestures are explained; transitional
    display states (settling, in progress, waiting) carry no explanation.
    Any label without a table entry raises instead of being papered over.
    """

    def __init__(
        self,
        classifier: Optional[GestureClassifier] = None,
        explanations: Optional[ExplanationBook] = None,
    ):
        self.classifier = classifier or GestureClassifier()
        self.explanations = explanations or ExplanationBook.with_defaults()

    def interpret(self, frame: Any) -> SignResponse:
        """Classify one frame and explain the raw result."""
        result, alternatives = self.classifier.classify_with_alternatives(frame)
        return self._build(
            label=result.label,
            confidence=result.confidence,
            phase="raw",
            alternatives=alternatives,
            explain=True,
        )

    def describe(
        self,
        state: RecognitionState,
        alternatives: Optional[list[ClassificationResult]] = None,
    ) -> SignResponse:
        """Wrap an engine display state in a response."""
        return self._build(
            label=state.label,
            confidence=state.confidence,
            phase=state.phase.value,
            alternatives=alternatives or [],
            explain=state.phase is DisplayPhase.CONFIRMED,
        )

    def _build(
        self,
        label: str,
        confidence: float,
        phase: str,
        alternatives: list[ClassificationResult],
        explain: bool,
    ) -> SignResponse:
        explanation = self.explanations.lookup(label) if explain else None
        timestamp = _now_iso()

        try:
            return SignResponse(
                recognized=SignResult(label=label, confidence=confidence, timestamp=timestamp),
                alternatives=[
                    SignResult(label=a.label, confidence=a.confidence, timestamp=timestamp)
                    for a in alternatives
                ],
                explanation=explanation,
                phase=phase,
            )
        except ValidationError as e:
            msg = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            logger.error("Invalid sign response for %r: %s", label, msg)
            raise InterpretationError(f"Invalid output: {msg}") from e
