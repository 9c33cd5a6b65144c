"""Exceptions raised by the SignCopilot wrapping layers.

The classifier and the confirmation engine never raise; these cover the
layers built on top of them.
"""


class SignCopilotError(Exception):
    """Base exception for SignCopilot errors."""
    pass


class MissingExplanationError(SignCopilotError, KeyError):
    """Raised when a produced label has no entry in the explanation table."""

    def __init__(self, label: str):
        super().__init__(label)
        self.label = label

    def __str__(self) -> str:
        return f"No explanation registered for label {self.label!r}"


class InterpretationError(SignCopilotError):
    """Raised when a sign response cannot be built or fails validation."""
    pass


class SessionInactiveError(SignCopilotError):
    """Raised when frames are submitted to a stopped recognition session."""
    pass


class ConfigError(SignCopilotError):
    """Raised when a settings file is missing or malformed."""
    pass
