"""Tests for recording and replaying detection streams."""

import json

import numpy as np
import pytest

from sign_copilot.detector import SimulatedHandDetector
from sign_copilot.recorder import GesturePlayer, GestureRecorder
from sign_copilot.session import RecognitionSession


def record_stream(gestures, count, hold=3, interval=0.1, seed=0):
    recorder = GestureRecorder()
    recorder.start()
    detector = SimulatedHandDetector(seed=seed)
    stream = detector.stream(gestures=gestures, count=count, hold=hold)
    for i, detections in enumerate(stream):
        recorder.add_frame(detections, timestamp=i * interval)
    recorder.stop()
    return recorder


class TestGestureRecorder:
    def test_records_frames(self):
        recorder = record_stream(["fist", "none"], count=6)
        assert recorder.frame_count == 6
        assert recorder.duration == pytest.approx(0.5)
        assert not recorder.is_recording

    def test_ignores_frames_when_stopped(self):
        recorder = GestureRecorder()
        recorder.add_frame(SimulatedHandDetector(seed=0).detect(gesture="fist"))
        assert recorder.frame_count == 0

    def test_default_timestamps(self):
        recorder = GestureRecorder()
        recorder.start()
        recorder.add_frame([])
        recorder.add_frame([])
        assert recorder.frame_count == 2
        assert recorder.duration >= 0.0

    def test_save_json(self, tmp_path):
        recorder = record_stream(["peace"], count=3)
        path = tmp_path / "rec.json"
        recorder.save(path)

        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["frame_count"] == 3
        assert len(data["frames"][0]["hands"]) == 1
        assert len(data["frames"][0]["hands"][0]) == 21

    def test_empty_recording(self, tmp_path):
        recorder = GestureRecorder()
        recorder.start()
        recorder.stop()
        path = recorder.save_compact(tmp_path / "empty.npz")
        assert GesturePlayer.load(path).frame_count == 0


class TestGesturePlayer:
    def test_json_round_trip(self, tmp_path):
        recorder = record_stream(["fist", "none"], count=6)
        path = tmp_path / "rec.json"
        recorder.save(path)

        player = GesturePlayer.load(path)
        frames = list(player.play())
        assert player.frame_count == 6
        assert len(frames[0].hands) == 1
        assert frames[3].hands == []

        detections = frames[0].detections()
        assert detections[0].landmarks.shape == (21, 3)
        assert 0.85 <= detections[0].score <= 1.0

    def test_npz_round_trip(self, tmp_path):
        recorder = record_stream(["point", "none"], count=6)
        path = recorder.save_compact(tmp_path / "rec")
        assert path.suffix == ".npz"

        player = GesturePlayer.load(path)
        frames = list(player.play())
        assert player.frame_count == 6
        assert player.duration == pytest.approx(0.5)
        assert [len(f.hands) for f in frames] == [1, 1, 1, 0, 0, 0]
        assert frames[0].handedness == ["Right"]

    def test_replay_reproduces_live_session(self, tmp_path):
        detector = SimulatedHandDetector(seed=4)
        live = RecognitionSession(auto_start=True)
        recorder = GestureRecorder()
        recorder.start()
        live_labels = []
        for i, detections in enumerate(detector.stream(["fist", "peace"], count=12, hold=6)):
            response = live.submit(detections, timestamp=i * 0.1)
            recorder.add_frame(detections, label=response.recognized.label, timestamp=i * 0.1)
            live_labels.append(response.recognized.label)

        path = tmp_path / "live.json"
        recorder.save(path)

        replayed = GesturePlayer.load(path).replay(RecognitionSession())
        assert [r.recognized.label for r in replayed] == live_labels
        assert "Closed Fist" in live_labels
        assert "Peace Sign" in live_labels

    def test_play_realtime_speed(self, tmp_path):
        recorder = record_stream(["fist"], count=3, interval=0.01)
        path = tmp_path / "fast.json"
        recorder.save(path)
        frames = list(GesturePlayer.load(path).play_realtime(speed=10.0))
        assert len(frames) == 3

    def test_recorded_landmarks_are_preserved(self, tmp_path):
        detector = SimulatedHandDetector(seed=2)
        detections = detector.detect(gesture="ok")
        recorder = GestureRecorder()
        recorder.start()
        recorder.add_frame(detections, timestamp=0.0)
        recorder.save(tmp_path / "one.json")

        frame = next(GesturePlayer.load(tmp_path / "one.json").play())
        np.testing.assert_allclose(frame.detections()[0].landmarks, detections[0].landmarks)
