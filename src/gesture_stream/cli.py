"""gesture-stream CLI.

Usage:
    gesture-stream replay      - Run a recording through the pipeline
    gesture-stream record      - Record landmark frames from the camera
    gesture-stream benchmark   - Time the pipeline on synthetic poses
    gesture-stream config      - Print the effective configuration
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")
from typing import Optional

from gesture_stream.config import PipelineConfig
from gesture_stream.errors import ConfigError, ProviderUnavailableError

app = typer.Typer(
    name="gesture-stream",
    help="Stable hand gesture events, trails and adaptive load tiers from hand landmarks.",
    add_completion=False,
)

logger = logging.getLogger("gesture_stream.cli")


@app.callback()
def main_options(
    log_level: str = typer.Option("warning", "--log-level", help="Log level"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(path: Optional[str]) -> PipelineConfig:
    if not path:
        return PipelineConfig()
    try:
        config = PipelineConfig.from_yaml(path)
        logger.info("Loaded pipeline config from %s", path)
        return config
    except FileNotFoundError:
        typer.echo(f"❌ Config not found: {path}", err=True)
        raise typer.Exit(1)
    except ConfigError as e:
        typer.echo(f"❌ Invalid config {path}: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to recording file"),
    speed: float = typer.Option(1.0, help="Playback speed multiplier"),
    realtime: bool = typer.Option(False, help="Play at original timing"),
    config: Optional[str] = typer.Option(None, "--config", help="Pipeline config YAML"),
):
    """Replay a recorded session through a tracking session."""
    from gesture_stream.pipeline import GesturePipeline
    from gesture_stream.providers import ReplayProvider
    from gesture_stream.recorder import FramePlayer
    from gesture_stream.session import TrackingSession

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)
    if speed <= 0:
        typer.echo("❌ --speed must be positive", err=True)
        raise typer.Exit(1)

    player = FramePlayer.load(path)
    typer.echo(f"▶️  Replaying {path.name} ({player.tick_count} ticks, {player.duration:.1f}s)")

    pipeline = GesturePipeline(_load_config(config))
    pipeline.gestures.subscribe(
        lambda g: typer.echo(
            f"   🤚 {g.timestamp:8.3f}s {g.hand.value:5s} {g.type.value} ({g.confidence:.2f})"
        )
    )
    pipeline.tiers.subscribe(
        lambda c: typer.echo(f"   ⚙️  tier {c.old.value} -> {c.new.value} at {c.fps:.1f} fps")
    )
    pipeline.hands.subscribe(
        lambda e: typer.echo(
            f"   👋 {e.timestamp:8.3f}s hands {e.kind.value}: {', '.join(h.value for h in e.hands)}"
        )
    )

    session = TrackingSession(ReplayProvider(player, realtime=realtime, speed=speed), pipeline)

    async def _run() -> int:
        await session.start()
        try:
            return await session.run()
        finally:
            await session.close()

    ticks = asyncio.run(_run())
    stats = pipeline.stats
    typer.echo(
        f"\n✅ Replay complete. {ticks} ticks, {stats.emitted} gestures emitted, "
        f"{stats.suppressed} suppressed by cooldown."
    )


@app.command()
def record(
    output: str = typer.Option("recording.json", "-o", help="Output file path"),
    duration: float = typer.Option(0, help="Recording duration in seconds (0 = until Ctrl+C)"),
    camera: int = typer.Option(0, help="Camera device index"),
):
    """Record hand landmark frames from the camera."""
    from gesture_stream.providers import MediaPipeProvider
    from gesture_stream.recorder import FrameRecorder

    provider = MediaPipeProvider(camera_index=camera)
    recorder = FrameRecorder()

    async def _record():
        await provider.start()
        typer.echo(f"🎥 Recording from camera {camera}...")
        typer.echo("   Press Ctrl+C to stop")
        recorder.start()
        start = time.monotonic()
        try:
            while True:
                frames = await provider.next_frames()
                recorder.add_tick(frames)

                if recorder.tick_count % 30 == 0:
                    elapsed = time.monotonic() - start
                    typer.echo(
                        f"\r   Ticks: {recorder.tick_count} | Duration: {elapsed:.1f}s | Hands: {len(frames)}",
                        nl=False,
                    )

                if duration > 0 and (time.monotonic() - start) >= duration:
                    break
        finally:
            recorder.stop()
            await provider.stop()

    try:
        asyncio.run(_record())
    except ProviderUnavailableError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass

    typer.echo(f"\n\n📼 Recorded {recorder.tick_count} ticks ({recorder.duration:.1f}s)")
    recorder.save(output)
    typer.echo(f"💾 Saved to: {output}")


@app.command()
def benchmark(
    ticks: int = typer.Option(1000, help="Number of ticks"),
    hands: int = typer.Option(2, help="Synthetic hands per tick (1 or 2)"),
    config: Optional[str] = typer.Option(None, "--config", help="Pipeline config YAML"),
):
    """Time the full pipeline on synthetic canonical poses."""
    import numpy as np

    from gesture_stream.gestures import CANONICAL_ORDER
    from gesture_stream.landmarks import Handedness
    from gesture_stream.pipeline import GesturePipeline
    from gesture_stream.synthetic import make_hand

    hands = max(1, min(2, hands))
    pipeline = GesturePipeline(_load_config(config))
    rng = np.random.default_rng(42)
    handedness = [Handedness.RIGHT, Handedness.LEFT][:hands]

    typer.echo(f"⚡ Running benchmark: {ticks} ticks, {hands} hand(s)")

    # Hold each pose for 20 ticks so gestures stabilize and emit
    poses = list(CANONICAL_ORDER)
    times = []
    for i in range(ticks):
        gesture = poses[(i // 20) % len(poses)]
        frames = [
            make_hand(gesture, hand, center=(0.3 + 0.4 * k, 0.5), noise=0.002, rng=rng)
            for k, hand in enumerate(handedness)
        ]
        t0 = time.perf_counter()
        pipeline.process(frames, now=i / 60.0)
        times.append(time.perf_counter() - t0)

    if not times:
        typer.echo("Nothing to measure.")
        return

    avg_ms = sum(times) / len(times) * 1000
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000
    fps = 1000 / avg_ms if avg_ms > 0 else 0
    stats = pipeline.stats

    typer.echo(f"\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.3f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.3f} ms")
    typer.echo(f"   Throughput:      {fps:.0f} ticks/s")
    typer.echo(f"   Emitted:         {stats.emitted} ({stats.suppressed} suppressed)")

    typer.echo(f"\n📈 Stage breakdown:")
    for name, s in stats.profiler_summary.items():
        typer.echo(f"   {name:15s} avg={s['avg_ms']:.3f}ms  p95={s['p95_ms']:.3f}ms")


@app.command("config")
def show_config(
    config: Optional[str] = typer.Option(None, "--config", help="Pipeline config YAML"),
):
    """Print the effective pipeline configuration as YAML."""
    typer.echo(_load_config(config).to_yaml(), nl=False)


def main():
    app()


if __name__ == "__main__":
    main()
