#!/usr/bin/env python3
"""Live webcam demo: prints stable gestures, tier changes and trail lengths.

Usage:
    python examples/demo_webcam.py [--camera 0] [--seconds 30] [--extended]

Needs the camera extra: pip install -e ".[camera]"
"""

import argparse
import asyncio
import logging
import sys

from gesture_stream import (
    GesturePipeline,
    MediaPipeProvider,
    PipelineConfig,
    ProviderUnavailableError,
    TrackingSession,
)


async def run(args):
    config = PipelineConfig(extended_gestures=args.extended)
    pipeline = GesturePipeline(config)

    pipeline.gestures.subscribe(
        lambda g: print(f"  🤚 {g.hand.value:5s} {g.type.value} ({g.confidence:.0%})")
    )
    pipeline.tiers.subscribe(
        lambda c: print(f"  ⚙️  {c.old.value} -> {c.new.value} ({c.fps:.0f} fps)")
    )
    pipeline.hands.subscribe(
        lambda e: print(f"  👋 hands {e.kind.value}: {[h.value for h in e.hands]}")
    )

    session = TrackingSession(MediaPipeProvider(camera_index=args.camera), pipeline)
    await session.start()

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.seconds
    try:
        while loop.time() < deadline:
            result = await session.tick()
            if result is None:
                continue
            direction = result.pointing()
            if direction is not None and session.ticks % 15 == 0:
                print(f"  👉 pointing ({direction[0]:+.2f}, {direction[1]:+.2f})")
            if session.ticks % 60 == 0:
                lengths = {h.value: len(s) for h, s in result.trails.items()}
                print(f"  tier={result.tier.value} trails={lengths} pinch={result.pinch_strength():.2f}")
    finally:
        await session.close()

    stats = pipeline.stats
    print(f"\n{stats.ticks} ticks, {stats.emitted} gestures, {stats.fps:.1f} fps")


def main():
    parser = argparse.ArgumentParser(description="gesture-stream webcam demo")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--seconds", type=float, default=30.0, help="How long to run")
    parser.add_argument("--extended", action="store_true", help="Enable rock_on")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("Starting gesture-stream... (Ctrl+C to quit)\n")

    try:
        asyncio.run(run(args))
    except ProviderUnavailableError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
