"""Landmark recording and replay: capture detection streams to disk.

Recorded sessions replay through a RecognitionSession with their recorded
timestamps, so confirmation timing is reproduced exactly without a camera.

Two on-disk formats are supported:

- ``.json``: one object per frame, readable and diffable;
- ``.npz``: every recorded hand stacked into one (hands, 21, 3) array, with
  a ``frame_index`` column mapping each hand back to its frame.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import numpy as np

from sign_copilot.detector import HandDetection

if TYPE_CHECKING:
    from sign_copilot.schema import SignResponse
    from sign_copilot.session import RecognitionSession

logger = logging.getLogger("sign_copilot.recorder")

FORMAT_VERSION = 1


@dataclass
class RecordedFrame:
    timestamp: float  # seconds since the recording started
    hands: list[list[list[float]]] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)
    handedness: list[str] = field(default_factory=list)
    label: Optional[str] = None  # display label at record time, if known

    @classmethod
    def from_detections(
        cls, detections: list[HandDetection], timestamp: float, label: Optional[str] = None
    ) -> RecordedFrame:
        return cls(
            timestamp=float(timestamp),
            hands=[np.asarray(d.landmarks, dtype=np.float32).tolist() for d in detections],
            scores=[float(d.score) for d in detections],
            handedness=[d.handedness for d in detections],
            label=label,
        )

    def detections(self) -> list[HandDetection]:
        """Rebuild detector output; missing metadata falls back to defaults."""
        out = []
        for i, hand in enumerate(self.hands):
            score = self.scores[i] if i < len(self.scores) else 1.0
            side = self.handedness[i] if i < len(self.handedness) else "Right"
            out.append(HandDetection(np.asarray(hand, dtype=np.float32), side, score))
        return out

    def to_dict(self) -> dict:
        return {
            "t": self.timestamp,
            "hands": self.hands,
            "scores": self.scores,
            "handedness": self.handedness,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RecordedFrame:
        return cls(
            timestamp=float(data["t"]),
            hands=data.get("hands", []),
            scores=data.get("scores", []),
            handedness=data.get("handedness", []),
            label=data.get("label"),
        )


def _frames_duration(frames: list[RecordedFrame]) -> float:
    return frames[-1].timestamp if frames else 0.0


class GestureRecorder:
    """Collects detection frames while recording is on.

    Usage:
        recorder = GestureRecorder()
        recorder.start()
        for detections in detector.stream():
            response = session.submit(detections)
            recorder.add_frame(detections, label=response.recognized.label)
        recorder.stop()
        recorder.save("session.json")
    """

    def __init__(self):
        self._frames: list[RecordedFrame] = []
        self._started_at = 0.0
        self._active = False

    def start(self):
        """Discard any previous frames and begin recording."""
        self._frames = []
        self._started_at = time.monotonic()
        self._active = True

    def stop(self) -> int:
        """Stop recording; returns the number of frames kept."""
        self._active = False
        logger.debug("Recording stopped with %d frames", len(self._frames))
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._active

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        return _frames_duration(self._frames)

    def add_frame(
        self,
        detections: list[HandDetection],
        label: Optional[str] = None,
        timestamp: Optional[float] = None,
    ):
        """Append one frame. Ignored unless recording.

        ``timestamp`` is seconds since ``start()``; by default the elapsed
        monotonic time is used.
        """
        if not self._active:
            return
        if timestamp is None:
            timestamp = time.monotonic() - self._started_at
        self._frames.append(RecordedFrame.from_detections(detections, timestamp, label))

    def save(self, path: str | Path) -> Path:
        """Write the recording as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "version": FORMAT_VERSION,
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [frame.to_dict() for frame in self._frames],
        }
        path.write_text(json.dumps(document))
        logger.info("Saved %d frames to %s", len(self._frames), path)
        return path

    def save_compact(self, path: str | Path) -> Path:
        """Write the recording as compressed numpy arrays (``.npz``)."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        rows = [
            (i, hand, frame.scores[j] if j < len(frame.scores) else 1.0)
            for i, frame in enumerate(self._frames)
            for j, hand in enumerate(frame.hands)
        ]
        landmarks = np.array([hand for _, hand, _ in rows], dtype=np.float32).reshape(-1, 21, 3)
        info = [{"handedness": f.handedness, "label": f.label} for f in self._frames]

        np.savez_compressed(
            path,
            version=np.array(FORMAT_VERSION),
            timestamps=np.array([f.timestamp for f in self._frames], dtype=np.float64),
            landmarks=landmarks,
            frame_index=np.array([i for i, _, _ in rows], dtype=np.int32),
            scores=np.array([s for _, _, s in rows], dtype=np.float32),
            info=np.array(json.dumps(info)),
        )
        logger.info("Saved %d frames (%d hands) to %s", len(self._frames), len(rows), path)
        return path


def _read_json(path: Path) -> list[RecordedFrame]:
    document = json.loads(path.read_text())
    return [RecordedFrame.from_dict(f) for f in document["frames"]]


def _read_npz(path: Path) -> list[RecordedFrame]:
    with np.load(path, allow_pickle=False) as data:
        timestamps = data["timestamps"]
        landmarks = data["landmarks"]
        frame_index = data["frame_index"]
        scores = data["scores"]
        info = json.loads(str(data["info"]))

    frames = [
        RecordedFrame(
            timestamp=float(t),
            handedness=info[i]["handedness"],
            label=info[i]["label"],
        )
        for i, t in enumerate(timestamps)
    ]
    for row, i in enumerate(frame_index):
        frames[i].hands.append(landmarks[row].tolist())
        frames[i].scores.append(float(scores[row]))
    return frames


_READERS = {".json": _read_json, ".npz": _read_npz}


class GesturePlayer:
    """Plays back a recording, either instantly or on its recorded clock.

    Usage:
        player = GesturePlayer.load("session.json")
        responses = player.replay(session)
    """

    def __init__(self, frames: list[RecordedFrame]):
        self._frames = frames

    @classmethod
    def load(cls, path: str | Path) -> GesturePlayer:
        """Read a ``.json`` or ``.npz`` recording; other suffixes are read as JSON."""
        path = Path(path)
        reader = _READERS.get(path.suffix, _read_json)
        frames = reader(path)
        logger.debug("Loaded %d frames from %s", len(frames), path)
        return cls(frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        return _frames_duration(self._frames)

    def play(self) -> Iterator[RecordedFrame]:
        """Yield frames back to back."""
        return iter(self._frames)

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedFrame]:
        """Yield frames on the recorded schedule, scaled by ``speed``."""
        origin = time.monotonic()
        for frame in self._frames:
            delay = frame.timestamp / speed - (time.monotonic() - origin)
            if delay > 0:
                time.sleep(delay)
            yield frame

    def replay(self, session: RecognitionSession) -> list[SignResponse]:
        """Feed every frame through a session using recorded timestamps.

        The session is started if needed.
        """
        if not session.active:
            session.start()
        return [
            session.submit(frame.detections(), timestamp=frame.timestamp)
            for frame in self._frames
        ]
