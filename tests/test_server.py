"""Tests for the HTTP and WebSocket service."""

import pytest

from sign_copilot.config import Settings
from sign_copilot.detector import SimulatedHandDetector
from sign_copilot.server import app, state


def frame(gesture):
    return SimulatedHandDetector(noise=0.0).template(gesture).tolist()


@pytest.fixture
def client():
    from starlette.testclient import TestClient

    state.configure(Settings())
    state.last_response = None
    return TestClient(app)


class TestStatusEndpoint:
    def test_status(self, client):
        r = client.get("/api/status")
        assert r.status_code == 200
        data = r.json()
        assert data["active"] is True
        assert data["simulating"] is False
        assert data["frames"] == 0
        assert "version" in data

    def test_gestures(self, client):
        data = client.get("/api/gestures").json()
        assert len(data["rules"]) == 11
        assert data["rules"][0]["name"] == "Closed Fist"
        assert "No Hand Detected" in data["labels"]


class TestClassifyEndpoint:
    def test_classify(self, client):
        r = client.post("/api/classify", json={"landmarks": frame("thumbs_up")})
        assert r.status_code == 200
        data = r.json()
        assert data["recognized"]["label"] == "Thumbs Up"
        assert data["phase"] == "raw"
        assert data["explanation"]["meaning"]

    def test_classify_no_hand(self, client):
        data = client.post("/api/classify", json={}).json()
        assert data["recognized"]["label"] == "No Hand Detected"
        assert data["recognized"]["confidence"] == 0.0

    def test_classify_bad_points(self, client):
        data = client.post("/api/classify", json={"landmarks": [[0, 0, 0]] * 4}).json()
        assert data["recognized"]["label"] == "Invalid Landmarks"

    def test_classify_oversized_coordinate(self, client):
        landmarks = [[0.5, 0.5, 0.0]] * 20 + [[10**400, 0.5, 0.0]]
        r = client.post("/api/classify", json={"landmarks": landmarks})
        assert r.status_code == 200
        assert r.json()["recognized"]["label"] == "Invalid Data"

    def test_classify_is_stateless(self, client):
        client.post("/api/classify", json={"landmarks": frame("fist")})
        assert client.get("/api/session/history").json()["history"] == []


class TestSessionEndpoints:
    def test_confirmation_over_frames(self, client):
        phases = []
        for t in (0.0, 0.1, 0.2):
            r = client.post("/api/session/frame", json={"landmarks": frame("peace"), "timestamp": t})
            assert r.status_code == 200
            phases.append(r.json()["phase"])
        assert phases == ["settling", "settling", "confirmed"]

        status = client.get("/api/status").json()
        assert status["confirmations"] == 1
        assert status["last_response"]["recognized"]["label"] == "Peace Sign"

    def test_detections(self, client):
        hands = [
            {"landmarks": frame("point"), "score": 0.6, "handedness": "Left"},
            {"landmarks": frame("fist"), "score": 0.95},
        ]
        for t in (0.0, 0.1, 0.2):
            r = client.post("/api/session/detections", json={"hands": hands, "timestamp": t})
        assert r.json()["recognized"]["label"] == "Closed Fist"

    def test_history(self, client):
        client.post("/api/session/frame", json={"landmarks": frame("fist"), "timestamp": 0.0})
        client.post("/api/session/frame", json={"timestamp": 0.1})
        data = client.get("/api/session/history").json()
        assert [h["label"] for h in data["history"]] == ["Closed Fist", "No Hand Detected"]
        assert data["candidate"]["label"] == "Closed Fist"
        assert data["candidate"]["count"] == 1

    def test_reset(self, client):
        client.post("/api/session/frame", json={"landmarks": frame("fist"), "timestamp": 0.0})
        r = client.post("/api/session/reset")
        assert r.json()["history"] == []
        assert client.get("/api/session/history").json()["candidate"] is None

    def test_bad_timestamp_rejected(self, client):
        r = client.post("/api/session/frame", json={"landmarks": frame("peace"), "timestamp": "soon"})
        assert r.status_code == 422
        r = client.post(
            "/api/session/frame",
            content='{"landmarks": null, "timestamp": NaN}',
            headers={"content-type": "application/json"},
        )
        assert r.status_code == 422
        assert client.get("/api/session/history").json()["candidate"] is None

    def test_stopped_session_conflicts(self, client):
        assert client.post("/api/session/stop").json() == {"active": False}
        r = client.post("/api/session/frame", json={"landmarks": frame("fist")})
        assert r.status_code == 409
        assert r.json()["error"] == "SessionInactiveError"

        client.post("/api/session/start")
        r = client.post("/api/session/frame", json={"landmarks": frame("fist")})
        assert r.status_code == 200


class TestExplanationEndpoint:
    def test_known_label(self, client):
        r = client.get("/api/explanations/Thumbs Up")
        assert r.status_code == 200
        assert "approval" in r.json()["meaning"]

    def test_unknown_label(self, client):
        r = client.get("/api/explanations/Rock On")
        assert r.status_code == 404
        assert "Rock On" in r.json()["detail"]


class TestMetricsEndpoint:
    def test_metrics(self, client):
        client.post("/api/session/frame", json={"landmarks": frame("fist"), "timestamp": 0.0})
        r = client.get("/metrics")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/plain")
        assert 'sign_copilot_classifications_total{label="Closed Fist"}' in r.text
        assert "sign_copilot_active_connections 0" in r.text


class TestWebSocket:
    def test_connect_and_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "connected"
            assert "Closed Fist" in hello["labels"]

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_frames_push_state(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            for t in (0.0, 0.1, 0.2):
                ws.send_json({"type": "frame", "landmarks": frame("ok"), "timestamp": t})
                message = ws.receive_json()
            assert message["type"] == "state"
            assert message["response"]["recognized"]["label"] == "OK Sign"
            assert message["response"]["phase"] == "confirmed"

    def test_invalid_messages(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"
            ws.send_json({"type": "dance"})
            assert "dance" in ws.receive_json()["detail"]

    def test_bad_timestamp_keeps_session_usable(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "frame", "landmarks": frame("peace"), "timestamp": "soon"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["errors"][0]["loc"] == ["timestamp"]

            # Same connection still serves frames.
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

        assert state.session.engine.candidate is None
        r = client.post("/api/session/frame", json={"landmarks": frame("peace"), "timestamp": 5.0})
        assert r.status_code == 200
        assert r.json()["phase"] == "settling"

    def test_reset_message(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "frame", "landmarks": frame("fist"), "timestamp": 0.0})
            ws.receive_json()
            ws.send_json({"type": "reset"})
            assert ws.receive_json() == {"type": "reset"}
        assert state.session.history == []
