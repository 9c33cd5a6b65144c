"""HTTP + WebSocket service around a recognition session.

Clients post landmark frames (or detection lists) and receive the debounced
display state with its explanation. With ``server.simulate`` enabled the
service also drives the session from a simulated hand detector and pushes
every state to connected WebSocket clients.

Usage:
    sign-copilot serve --simulate
    # or
    uvicorn sign_copilot.server:app --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from sign_copilot import __version__
from sign_copilot.config import Settings
from sign_copilot.detector import HandDetection, SimulatedHandDetector
from sign_copilot.exceptions import (
    ConfigError,
    MissingExplanationError,
    SessionInactiveError,
    SignCopilotError,
)
from sign_copilot.metrics import MetricsCollector
from sign_copilot.schema import DetectionRequest, FrameRequest, SignResponse
from sign_copilot.session import RecognitionSession

logger = logging.getLogger("sign_copilot.server")

app = FastAPI(title="SignCopilot", version=__version__)


# --- State ---

class ServerState:
    def __init__(self):
        self.clients: set[WebSocket] = set()
        self.metrics = MetricsCollector()
        self.settings = Settings()
        self.session = RecognitionSession(metrics=self.metrics, auto_start=True)
        self.detector: Optional[SimulatedHandDetector] = None
        self.running = False
        self.last_response: Optional[dict] = None

    def configure(self, settings: Settings):
        """Rebuild the session from settings (keeps metrics)."""
        self.settings = settings
        self.session = RecognitionSession.from_settings(
            settings, metrics=self.metrics, auto_start=True
        )

state = ServerState()


# --- Errors ---

@app.exception_handler(SignCopilotError)
async def sign_copilot_error(request: Request, exc: SignCopilotError):
    if isinstance(exc, SessionInactiveError):
        status = 409
    elif isinstance(exc, ConfigError):
        status = 400
    else:
        status = 500
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": type(exc).__name__, "detail": str(exc)}, status_code=status)


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    session = state.session
    return {
        "version": __version__,
        "active": session.active,
        "simulating": state.running,
        "clients": len(state.clients),
        "frames": session.stats.frames,
        "confirmations": session.stats.confirmations,
        "last_response": state.last_response,
    }


@app.get("/api/gestures")
async def list_gestures():
    classifier = state.session.classifier
    return {
        "rules": [r.to_dict() for r in classifier.rules],
        "labels": classifier.labels,
    }


@app.post("/api/classify", response_model=SignResponse)
async def classify(request: FrameRequest):
    """Stateless single-frame classification with explanation."""
    return state.session.interpreter.interpret(request.landmarks)


@app.post("/api/session/frame", response_model=SignResponse)
async def submit_frame(request: FrameRequest):
    response = state.session.submit_frame(request.landmarks, request.timestamp)
    await _publish(response)
    return response


@app.post("/api/session/detections", response_model=SignResponse)
async def submit_detections(request: DetectionRequest):
    detections = [
        HandDetection(
            landmarks=hand.landmarks,
            handedness=hand.handedness,
            score=hand.score,
        )
        for hand in request.hands
    ]
    response = state.session.submit(detections, request.timestamp)
    await _publish(response)
    return response


@app.post("/api/session/start")
async def start_session():
    state.session.start()
    return {"active": True}


@app.post("/api/session/stop")
async def stop_session():
    state.session.stop()
    return {"active": False}


@app.post("/api/session/reset")
async def reset_session():
    state.session.reset()
    state.last_response = None
    return {"active": state.session.active, "history": []}


@app.get("/api/session/history")
async def session_history():
    engine = state.session.engine
    candidate = engine.candidate
    return {
        "history": [
            {"label": e.label, "confidence": e.confidence, "timestamp": e.timestamp}
            for e in engine.history
        ],
        "candidate": None if candidate is None else {
            "label": candidate.label,
            "confidence": candidate.confidence,
            "count": candidate.count,
            "first_seen": candidate.first_seen,
        },
    }


@app.get("/api/explanations/{label}")
async def explain(label: str):
    try:
        return state.session.interpreter.explanations.lookup(label).model_dump()
    except MissingExplanationError as e:
        return JSONResponse({"error": "MissingExplanationError", "detail": str(e)}, status_code=404)


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    state.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "labels": state.session.classifier.labels,
            "active": state.session.active,
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
                continue

            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                await ws.send_json({"type": "error", "detail": "invalid JSON"})
                continue
            if not isinstance(data, dict):
                await ws.send_json({"type": "error", "detail": "expected a JSON object"})
                continue

            kind = data.get("type")
            if kind == "ping":
                await ws.send_json({"type": "pong", "server_time": time.time()})
            elif kind == "frame":
                try:
                    request = FrameRequest.model_validate(data)
                except ValidationError as e:
                    await ws.send_json({
                        "type": "error",
                        "detail": "invalid frame message",
                        "errors": e.errors(include_url=False, include_context=False),
                    })
                    continue
                try:
                    response = state.session.submit_frame(request.landmarks, request.timestamp)
                except SignCopilotError as e:
                    await ws.send_json({"type": "error", "detail": str(e)})
                    continue
                await _publish(response)
            elif kind == "reset":
                state.session.reset()
                state.last_response = None
                await ws.send_json({"type": "reset"})
            else:
                await ws.send_json({"type": "error", "detail": f"unknown message type {kind!r}"})
    except WebSocketDisconnect:
        pass
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all clients."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in state.clients:
        try:
            await ws.send_text(payload)
        except Exception as e:
            logger.debug("Dropping client: %s", e)
            dead.add(ws)
    state.clients -= dead


async def _publish(response: SignResponse):
    data = response.model_dump()
    state.last_response = data
    await broadcast({"type": "state", "response": data})


# --- Simulated capture loop ---

async def simulate_loop():
    """Feed simulated detections into the session at a fixed poll interval."""
    cfg = state.settings.server
    state.detector = SimulatedHandDetector(seed=cfg.seed)
    state.running = True
    logger.info("Simulating hand detections every %.2fs", cfg.poll_interval)

    try:
        for detections in state.detector.stream(hold=cfg.hold_frames):
            if not state.running:
                break
            if state.session.active:
                await _publish(state.session.submit(detections))
            await asyncio.sleep(cfg.poll_interval)
    finally:
        state.running = False
        state.detector.close()
        logger.info("Simulation stopped")


@app.on_event("startup")
async def startup():
    if state.settings.server.simulate:
        asyncio.create_task(simulate_loop())


@app.on_event("shutdown")
async def shutdown():
    state.running = False
