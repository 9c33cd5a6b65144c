"""Prometheus-compatible metrics for the recognition service.

Generates the text exposition format directly, no client library.

Tracked metrics:
- sign_copilot_frames_total (counter)
- sign_copilot_classifications_total (counter, by label)
- sign_copilot_invalid_frames_total (counter, by reason)
- sign_copilot_confirmations_total (counter, by label)
- sign_copilot_frame_latency_seconds (histogram)
- sign_copilot_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> list[str]:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for b, n in zip(self.buckets, self.bucket_counts):
                cumulative += n
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return lines


def _counter_block(name: str, help_text: str, label: str, counts: Counter) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for key, count in sorted(counts.items()):
        escaped = key.replace("\\", "\\\\").replace('"', '\\"')
        lines.append(f'{name}{{{label}="{escaped}"}} {count}')
    return lines


class MetricsCollector:
    """Collects recognition counters and renders them for Prometheus."""

    def __init__(self):
        self._classifications: Counter = Counter()
        self._invalid: Counter = Counter()
        self._confirmations: Counter = Counter()
        self._frames_total = 0
        self._active_connections = 0
        self._lock = threading.Lock()

        # Latency buckets from 0.1ms to 50ms; classification is cheap.
        self._latency = _Histogram(
            [0.0001, 0.0005, 0.001, 0.002, 0.005, 0.010, 0.020, 0.050]
        )
        self._start_time = time.time()

    def record_frame(self, latency_seconds: float):
        with self._lock:
            self._frames_total += 1
        self._latency.observe(latency_seconds)

    def record_classification(self, label: str, valid: bool = True):
        with self._lock:
            if valid:
                self._classifications[label] += 1
            else:
                self._invalid[label] += 1

    def record_confirmation(self, label: str):
        with self._lock:
            self._confirmations[label] += 1

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        uptime = time.time() - self._start_time
        lines: list[str] = [
            "# HELP sign_copilot_uptime_seconds Time since collector start",
            "# TYPE sign_copilot_uptime_seconds gauge",
            f"sign_copilot_uptime_seconds {uptime:.1f}",
            "",
            "# HELP sign_copilot_frames_total Total frames processed",
            "# TYPE sign_copilot_frames_total counter",
            f"sign_copilot_frames_total {self._frames_total}",
            "",
        ]

        with self._lock:
            lines += _counter_block(
                "sign_copilot_classifications_total",
                "Per-frame classifications by label",
                "label",
                self._classifications,
            )
            lines.append("")
            lines += _counter_block(
                "sign_copilot_invalid_frames_total",
                "Rejected frames by reason",
                "reason",
                self._invalid,
            )
            lines.append("")
            lines += _counter_block(
                "sign_copilot_confirmations_total",
                "Confirmed gestures by label",
                "label",
                self._confirmations,
            )
            lines.append("")

        lines += self._latency.render(
            "sign_copilot_frame_latency_seconds",
            "Frame processing latency in seconds",
        )
        lines.append("")

        lines.append("# HELP sign_copilot_active_connections Current WebSocket connections")
        lines.append("# TYPE sign_copilot_active_connections gauge")
        lines.append(f"sign_copilot_active_connections {self._active_connections}")

        return "\n".join(lines) + "\n"

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def classification_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._classifications)

    @property
    def invalid_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._invalid)

    @property
    def confirmation_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._confirmations)
