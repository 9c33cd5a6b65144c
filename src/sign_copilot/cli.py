"""SignCopilot CLI: the main entry point for all operations.

Usage:
    sign-copilot classify FRAME.json   Classify a single landmark frame
    sign-copilot simulate              Drive a session from simulated hands
    sign-copilot replay REC.json       Replay a recording through a session
    sign-copilot gestures              List the active rule cascade
    sign-copilot benchmark             Time classification throughput
    sign-copilot serve                 Start the HTTP/WebSocket service
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer

from sign_copilot.config import Settings, load_settings
from sign_copilot.exceptions import ConfigError, SignCopilotError

app = typer.Typer(
    name="sign-copilot",
    help="🤟 Real-time hand sign recognition with explanations.",
    add_completion=False,
)


def _fail(message: str):
    typer.echo(f"❌ {message}", err=True)
    raise typer.Exit(1)


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings()


def _session(settings: Settings, **kwargs):
    from sign_copilot.session import RecognitionSession

    try:
        return RecognitionSession.from_settings(settings, **kwargs)
    except SignCopilotError as e:
        _fail(str(e))


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Settings YAML (default: $SIGN_COPILOT_CONFIG)"
    ),
    log_level: str = typer.Option("warning", "--log-level", help="Log level"),
):
    """Load settings and configure logging for every command."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = load_settings(config)
    except ConfigError as e:
        _fail(str(e))


@app.command()
def classify(
    ctx: typer.Context,
    frame_file: Path = typer.Argument(..., help="JSON file: a 21x3 landmark list or {\"landmarks\": [...]}"),
):
    """Classify one landmark frame and print the explained result."""
    if not frame_file.exists():
        _fail(f"Frame file not found: {frame_file}")

    try:
        data = json.loads(frame_file.read_text())
    except json.JSONDecodeError as e:
        _fail(f"Cannot parse {frame_file}: {e}")

    frame = data.get("landmarks") if isinstance(data, dict) else data
    session = _session(_settings(ctx))
    try:
        response = session.interpreter.interpret(frame)
    except SignCopilotError as e:
        _fail(str(e))

    typer.echo(response.model_dump_json(indent=2))


@app.command()
def simulate(
    ctx: typer.Context,
    gesture: Optional[list[str]] = typer.Option(
        None, "--gesture", "-g", help="Gesture shape to cycle through (repeatable)"
    ),
    frames: int = typer.Option(24, help="Number of frames to simulate"),
    hold: Optional[int] = typer.Option(None, help="Frames per gesture (default from settings)"),
    interval: Optional[float] = typer.Option(None, help="Seconds between frames (default from settings)"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
    realtime: bool = typer.Option(False, help="Sleep between frames instead of using synthetic time"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write a sign log (.txt or .json)"),
    record: Optional[Path] = typer.Option(None, "--record", help="Save the simulated detections"),
    show_all: bool = typer.Option(False, "--all", help="Print every frame, not only changes"),
):
    """Drive a recognition session from simulated hand detections."""
    from sign_copilot.detector import SIMULATED_GESTURES, SimulatedHandDetector
    from sign_copilot.export import SignLog
    from sign_copilot.recorder import GestureRecorder

    settings = _settings(ctx)
    unknown = [g for g in gesture or [] if g not in SIMULATED_GESTURES]
    if unknown:
        _fail(f"Unknown gesture(s): {', '.join(unknown)}. Choose from {', '.join(SIMULATED_GESTURES)}")

    hold = hold if hold is not None else settings.server.hold_frames
    interval = interval if interval is not None else settings.server.poll_interval
    seed = seed if seed is not None else settings.server.seed

    session = _session(settings, auto_start=True)
    sign_log = SignLog()
    recorder = GestureRecorder()
    recorder.start()

    typer.echo(f"🎬 Simulating {frames} frames (hold={hold}, interval={interval:.2f}s)")
    last_label = None
    try:
        with SimulatedHandDetector(seed=seed) as detector:
            stream = detector.stream(gestures=gesture or None, count=frames, hold=hold)
            for i, detections in enumerate(stream):
                timestamp = i * interval
                response = session.submit(detections, timestamp=timestamp)
                recorder.add_frame(detections, label=response.recognized.label, timestamp=timestamp)
                sign_log.add(response)

                label = response.recognized.label
                if show_all or label != last_label:
                    marker = "✅" if response.phase == "confirmed" else "  "
                    typer.echo(
                        f"{marker} t={timestamp:6.2f}s  {label:<28s} "
                        f"{response.recognized.confidence:.2f}  [{response.phase}]"
                    )
                last_label = label

                if realtime:
                    time.sleep(interval)
    except SignCopilotError as e:
        _fail(str(e))
    finally:
        recorder.stop()

    typer.echo(f"\n📊 {session.stats.frames} frames, {session.stats.confirmations} confirmations")

    if log_file:
        sign_log.write(log_file)
        typer.echo(f"💾 Sign log saved to: {log_file}")
    if record:
        if record.suffix == ".npz":
            recorder.save_compact(record)
        else:
            recorder.save(record)
        typer.echo(f"💾 Recording saved to: {record}")


@app.command()
def replay(
    ctx: typer.Context,
    recording: Path = typer.Argument(..., help="Path to recording file (.json or .npz)"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write a sign log (.txt or .json)"),
):
    """Replay a recorded session through the confirmation engine."""
    from sign_copilot.export import SignLog
    from sign_copilot.recorder import GesturePlayer

    if not recording.exists():
        _fail(f"Recording not found: {recording}")

    player = GesturePlayer.load(recording)
    typer.echo(f"▶️  Replaying {recording.name} ({player.frame_count} frames, {player.duration:.1f}s)")

    session = _session(_settings(ctx))
    sign_log = SignLog()
    try:
        responses = player.replay(session)
    except SignCopilotError as e:
        _fail(str(e))

    for response in responses:
        if sign_log.add(response) and response.phase == "confirmed":
            typer.echo(
                f"   🤟 {response.recognized.label} "
                f"(confidence: {response.recognized.confidence:.2f})"
            )

    typer.echo(f"\n✅ Replay complete. {session.stats.confirmations} gestures confirmed.")
    if log_file:
        sign_log.write(log_file)
        typer.echo(f"💾 Sign log saved to: {log_file}")


@app.command()
def gestures(
    ctx: typer.Context,
    export: Optional[Path] = typer.Option(None, "--export", help="Write the cascade as YAML"),
):
    """List the classification cascade in priority order."""
    session = _session(_settings(ctx))
    rules = session.classifier.rules

    for i, rule in enumerate(rules, 1):
        fingers = " ".join(
            f"{f}={getattr(rule, f).value}"
            for f in ("thumb", "index", "middle", "ring", "pinky")
            if getattr(rule, f).value != "any"
        )
        typer.echo(f"{i:2d}. {rule.name:<14s} {rule.confidence:.2f}  {fingers}")

    if export:
        rules.save_to_file(export)
        typer.echo(f"💾 Saved {len(rules)} rules to: {export}")


@app.command()
def benchmark(
    ctx: typer.Context,
    iterations: int = typer.Option(1000, help="Number of frames to classify"),
    seed: int = typer.Option(42, help="Random seed"),
):
    """Measure per-frame classification and confirmation latency."""
    from sign_copilot.detector import SimulatedHandDetector

    session = _session(_settings(ctx), auto_start=True)
    detector = SimulatedHandDetector(seed=seed)
    frames = [detector.frame(detector.random_gesture()) for _ in range(min(iterations, 256))]

    typer.echo(f"⚡ Running benchmark: {iterations} iterations")
    times = []
    for i in range(iterations):
        t0 = time.perf_counter()
        session.submit_frame(frames[i % len(frames)], timestamp=i * 0.033)
        times.append(time.perf_counter() - t0)

    avg_ms = sum(times) / len(times) * 1000 if times else 0.0
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000 if times else 0.0
    fps = 1000 / avg_ms if avg_ms > 0 else 0

    typer.echo("\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.3f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.3f} ms")
    typer.echo(f"   Throughput:      {fps:.0f} FPS")


@app.command()
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
    simulate: bool = typer.Option(False, "--simulate", help="Feed the session from simulated hands"),
):
    """Start the HTTP + WebSocket recognition service."""
    import uvicorn
    from sign_copilot.server import app as fastapi_app, state

    settings = _settings(ctx)
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port
    if simulate:
        settings.server.simulate = True

    try:
        state.configure(settings)
    except SignCopilotError as e:
        _fail(str(e))

    cfg = settings.server
    typer.echo(f"🚀 Starting SignCopilot server on {cfg.host}:{cfg.port}")
    if cfg.simulate:
        typer.echo(f"   Simulating hands every {cfg.poll_interval:.2f}s")
    uvicorn.run(fastapi_app, host=cfg.host, port=cfg.port, log_level=cfg.log_level)


def main():
    app()


if __name__ == "__main__":
    main()
