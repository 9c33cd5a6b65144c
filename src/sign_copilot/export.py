"""Sign log export: readable text or JSON records of recognized signs."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from sign_copilot.schema import SignResponse

logger = logging.getLogger("sign_copilot.export")

LogFormat = Literal["txt", "json"]


def format_sign_log(response: SignResponse, fmt: LogFormat = "txt") -> str:
    """Format one response as a log line (txt) or a pretty JSON document."""
    if fmt == "json":
        return json.dumps(response.model_dump(), indent=2)
    if fmt != "txt":
        raise ValueError(f"Unsupported log format: {fmt!r}")

    timestamp = response.recognized.timestamp or datetime.now(timezone.utc).isoformat()
    confidence = response.recognized.confidence * 100
    return f"{timestamp}: {response.recognized.label} ({confidence:.1f}% confidence)"


class SignLog:
    """Accumulates responses and writes them out as a text or JSON file.

    Only confirmed and raw responses are kept by default; transitional
    display states would otherwise flood the log. Repeats of the same
    confirmed label collapse into one entry.
    """

    def __init__(self, include_transitional: bool = False):
        self.include_transitional = include_transitional
        self._entries: list[SignResponse] = []

    def add(self, response: SignResponse) -> bool:
        """Append a response; returns False if it was filtered out."""
        if not self.include_transitional and response.phase not in ("raw", "confirmed"):
            return False
        if (
            response.phase == "confirmed"
            and self._entries
            and self._entries[-1].phase == "confirmed"
            and self._entries[-1].recognized.label == response.recognized.label
        ):
            return False
        self._entries.append(response)
        return True

    @property
    def entries(self) -> list[SignResponse]:
        return list(self._entries)

    def render(self, fmt: LogFormat = "txt") -> str:
        if fmt == "json":
            return json.dumps([e.model_dump() for e in self._entries], indent=2)
        return "\n".join(format_sign_log(e, "txt") for e in self._entries)

    def write(self, path: str | Path, fmt: LogFormat | None = None) -> Path:
        """Write the log; format defaults from the file suffix."""
        path = Path(path)
        if fmt is None:
            fmt = "json" if path.suffix == ".json" else "txt"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(fmt) + "\n", encoding="utf-8")
        logger.info("Wrote %d sign log entries to %s", len(self._entries), path)
        return path

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
