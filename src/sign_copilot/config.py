"""SignCopilot configuration management.

Settings live in a YAML file with optional ``engine`` and ``server``
sections. Unknown keys are ignored with a warning; everything missing falls
back to the dataclass defaults.

    engine:
      min_confidence: 0.7
      confirmation_count: 3
    server:
      port: 8765
      simulate: true
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from sign_copilot.confirmation import ConfirmationConfig
from sign_copilot.exceptions import ConfigError
from sign_copilot.gestures import EXTENSION_THRESHOLD

logger = logging.getLogger("sign_copilot.config")

CONFIG_ENV_VAR = "SIGN_COPILOT_CONFIG"


@dataclass
class EngineSettings:
    history_size: int = 10
    min_confidence: float = 0.7
    confirmation_count: int = 3
    confirmation_window: float = 1.5
    grace_period: float = 0.5
    confirmation_bonus: float = 0.1
    extension_threshold: float = EXTENSION_THRESHOLD
    rules_file: Optional[str] = None

    def confirmation_config(self) -> ConfirmationConfig:
        return ConfirmationConfig(
            history_size=self.history_size,
            min_confidence=self.min_confidence,
            confirmation_count=self.confirmation_count,
            confirmation_window=self.confirmation_window,
            grace_period=self.grace_period,
            confirmation_bonus=self.confirmation_bonus,
        )


@dataclass
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 8765
    simulate: bool = False
    poll_interval: float = 0.5  # seconds between simulated frames
    hold_frames: int = 4  # simulated frames per gesture
    seed: Optional[int] = None
    log_level: str = "info"


@dataclass
class Settings:
    engine: EngineSettings = field(default_factory=EngineSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    explanations_file: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _build(cls, data: dict, section: str):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown %s settings: %s", section, ", ".join(unknown))
    return cls(**{k: v for k, v in data.items() if k in known})


def settings_from_dict(data: dict) -> Settings:
    if not isinstance(data, dict):
        raise ConfigError("Settings must be a mapping")

    sections = {}
    for name, cls in (("engine", EngineSettings), ("server", ServerSettings)):
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"'{name}' section must be a mapping")
        sections[name] = _build(cls, section, name)

    extra = sorted(set(data) - {"engine", "server", "explanations_file"})
    if extra:
        logger.warning("Ignoring unknown settings sections: %s", ", ".join(extra))

    settings = Settings(explanations_file=data.get("explanations_file"), **sections)
    try:
        settings.engine.confirmation_config()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid engine settings: {e}") from e
    return settings


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from ``path``, $SIGN_COPILOT_CONFIG, or defaults.

    Raises:
        ConfigError: if an explicitly named file is missing or malformed.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return Settings()
        path = env_path

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e

    settings = settings_from_dict(data)
    logger.debug("Loaded settings from %s", path)
    return settings


def save_settings(settings: Settings, path: str | Path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(settings.to_dict(), sort_keys=False))
