"""Explanation table: human-readable meaning for every produced label.

Labels are the lookup key, so the table must cover the full label taxonomy
of the classifier. A missing entry raises MissingExplanationError; no
fallback meaning is ever substituted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from sign_copilot.exceptions import ConfigError, MissingExplanationError
from sign_copilot.schema import Explanation

logger = logging.getLogger("sign_copilot.explanations")


DEFAULT_EXPLANATIONS: dict[str, dict] = {
    "Closed Fist": {
        "meaning": "A closed fist gesture, often used to show determination or agreement",
        "context": ["Agreement", "Determination", "Solidarity"],
        "suggestions": ["Keep fingers tightly closed", "Ensure thumb is visible", "Hold steady"],
    },
    "Open Hand": {
        "meaning": "An open palm gesture, commonly used for greeting or stopping",
        "context": ["Greeting", "Stop signal", "Openness"],
        "suggestions": ["Spread fingers naturally", "Keep palm flat", "Make sure all fingers are visible"],
    },
    "Stop Sign": {
        "meaning": "A stop or halt gesture with open palm facing forward",
        "context": ["Traffic control", "Stop signal", "Attention"],
        "suggestions": ["Palm facing forward", "Fingers together", "Arm extended"],
    },
    "Pointing": {
        "meaning": "A pointing gesture with index finger extended",
        "context": ["Direction", "Attention", "Indication"],
        "suggestions": ["Extend index finger clearly", "Keep other fingers closed", "Point directly at target"],
    },
    "Peace Sign": {
        "meaning": "A peace sign with index and middle fingers extended",
        "context": ["Peace", "Victory", "Photo pose"],
        "suggestions": ["Extend index and middle fingers", "Keep other fingers closed", "Form a V shape"],
    },
    "Thumbs Up": {
        "meaning": "A positive approval gesture with thumb extended upward",
        "context": ["Approval", "Good job", "Encouragement"],
        "suggestions": ["Keep thumb straight up", "Close other fingers", "Make sure thumb is clearly visible"],
    },
    "OK Sign": {
        "meaning": "An OK gesture forming a circle with thumb and index finger",
        "context": ["Approval", "Everything is fine", "Agreement"],
        "suggestions": ["Form a circle with thumb and index", "Keep other fingers extended", "Make the circle clearly visible"],
    },
    "Wave": {
        "meaning": "A waving gesture with open hand moving side to side",
        "context": ["Greeting", "Goodbye", "Attention"],
        "suggestions": ["Move hand side to side", "Keep fingers together", "Use a gentle motion"],
    },
    "No Hand Detected": {
        "meaning": "No hand was detected in the camera view",
        "context": ["Camera setup", "Hand positioning"],
        "suggestions": ["Ensure your hand is in the camera frame", "Check lighting", "Move closer to the camera"],
    },
    "Invalid Landmarks": {
        "meaning": "The hand detection data appears to be invalid",
        "context": ["Technical issue", "Data processing"],
        "suggestions": ["Try moving your hand", "Check camera connection", "Restart recognition"],
    },
    "Invalid Data": {
        "meaning": "The hand landmark data contains invalid values",
        "context": ["Data quality", "Processing error"],
        "suggestions": ["Ensure good lighting", "Keep hand steady", "Try a different position"],
    },
    "Unknown Gesture": {
        "meaning": "The hand gesture was not recognized by the system",
        "context": ["Recognition limits", "New gesture"],
        "suggestions": ["Try a more common gesture", "Ensure clear hand positioning", "Check lighting conditions"],
    },
}


class ExplanationBook:
    """Static label → Explanation mapping."""

    def __init__(self, entries: dict[str, Explanation]):
        self._entries = dict(entries)

    def lookup(self, label: str) -> Explanation:
        """Explanation for a label.

        Raises:
            MissingExplanationError: if the label has no entry.
        """
        try:
            return self._entries[label]
        except KeyError:
            logger.error("No explanation for label %r", label)
            raise MissingExplanationError(label) from None

    def missing(self, labels: Iterable[str]) -> list[str]:
        """Labels from ``labels`` that have no entry."""
        return [label for label in labels if label not in self._entries]

    def validate_labels(self, labels: Iterable[str]):
        """Fail unless every label in the taxonomy is covered."""
        missing = self.missing(labels)
        if missing:
            raise MissingExplanationError(missing[0])

    @classmethod
    def from_dict(cls, data: dict[str, dict]) -> ExplanationBook:
        try:
            entries = {label: Explanation(**entry) for label, entry in data.items()}
        except (TypeError, ValidationError) as e:
            raise ConfigError(f"Invalid explanation entry: {e}") from e
        return cls(entries)

    @classmethod
    def from_yaml(cls, path: str | Path) -> ExplanationBook:
        """Load a table from YAML: a top-level ``explanations`` mapping."""
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read explanations from {path}: {e}") from e

        entries = data.get("explanations") if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            raise ConfigError(f"{path}: expected an 'explanations' mapping")
        book = cls.from_dict(entries)
        logger.info("Loaded %d explanations from %s", len(book), path)
        return book

    def to_yaml(self, path: str | Path):
        data = {
            "explanations": {
                label: entry.model_dump() for label, entry in self._entries.items()
            }
        }
        with open(path, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)

    @classmethod
    def with_defaults(cls) -> ExplanationBook:
        return cls.from_dict(DEFAULT_EXPLANATIONS)

    @property
    def labels(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, label: str) -> bool:
        return label in self._entries

    def __len__(self) -> int:
        return len(self._entries)
