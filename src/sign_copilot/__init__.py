"""SignCopilot - Real-time hand sign recognition with explanations."""

__version__ = "0.1.0"

from sign_copilot.gestures import FingerState, GestureRule, GestureRuleSet, HandFeatures
from sign_copilot.classifier import ClassificationResult, FrameStatus, GestureClassifier
from sign_copilot.confirmation import (
    ConfirmationConfig,
    ConfirmationEngine,
    DisplayPhase,
    RecognitionState,
)
from sign_copilot.explanations import ExplanationBook
from sign_copilot.interpreter import SignInterpreter
from sign_copilot.session import RecognitionSession
from sign_copilot.detector import HandDetection, HandDetector, SimulatedHandDetector
from sign_copilot.recorder import GestureRecorder, GesturePlayer
from sign_copilot.export import SignLog, format_sign_log
from sign_copilot.metrics import MetricsCollector
from sign_copilot.config import Settings, load_settings
from sign_copilot.exceptions import (
    ConfigError,
    InterpretationError,
    MissingExplanationError,
    SessionInactiveError,
    SignCopilotError,
)
