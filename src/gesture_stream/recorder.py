"""Landmark recording and replay.

Record real tracking sessions so the pipeline can be exercised without a
camera: reproducible tests, headless CI, deterministic demos.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from gesture_stream.landmarks import LandmarkFrame

FORMAT_VERSION = 1


@dataclass
class RecordedTick:
    """The hand frames seen on one tick."""
    timestamp: float  # seconds from recording start
    frames: list[LandmarkFrame]


def _frame_to_dict(frame: LandmarkFrame) -> dict:
    return {
        "handedness": frame.handedness.value if frame.handedness else None,
        "confidence": frame.confidence,
        "landmarks": np.asarray(frame.landmarks).tolist(),
    }


def _frame_from_dict(data: dict) -> LandmarkFrame:
    return LandmarkFrame.from_points(
        data.get("landmarks", []),
        handedness=data.get("handedness"),
        confidence=data.get("confidence", 1.0),
    )


class FrameRecorder:
    """Records the hand frames of each tick.

    Usage:
        recorder = FrameRecorder()
        recorder.start()
        # In your tick loop:
        recorder.add_tick(frames)
        # When done:
        recorder.save("session.json")
    """

    def __init__(self):
        self._ticks: list[RecordedTick] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording session."""
        self._ticks = []
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of ticks captured."""
        self._recording = False
        return len(self._ticks)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def tick_count(self) -> int:
        return len(self._ticks)

    @property
    def duration(self) -> float:
        if not self._ticks:
            return 0.0
        return self._ticks[-1].timestamp

    def add_tick(self, frames: list[LandmarkFrame], timestamp: Optional[float] = None):
        """Record one tick's frames (possibly none).

        Args:
            frames: Hand frames for this tick.
            timestamp: Seconds since start; measured from the clock if omitted.
        """
        if not self._recording:
            return
        if timestamp is None:
            timestamp = time.monotonic() - self._start_time
        self._ticks.append(RecordedTick(timestamp=timestamp, frames=list(frames)))

    def save(self, path: str | Path):
        """Save the recording as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": FORMAT_VERSION,
            "tick_count": len(self._ticks),
            "duration": self.duration,
            "ticks": [
                {
                    "timestamp": tick.timestamp,
                    "frames": [_frame_to_dict(f) for f in tick.frames],
                }
                for tick in self._ticks
            ],
        }

        with open(path, "w") as f:
            json.dump(data, f)


class FramePlayer:
    """Replays a recorded session.

    Usage:
        player = FramePlayer.load("session.json")
        for tick in player.play():
            pipeline.process(tick.frames, now=tick.timestamp)
    """

    def __init__(self, ticks: list[RecordedTick]):
        self._ticks = ticks

    @classmethod
    def load(cls, path: str | Path) -> FramePlayer:
        with open(path) as f:
            data = json.load(f)

        version = data.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported recording version {version}")

        ticks = [
            RecordedTick(
                timestamp=float(t["timestamp"]),
                frames=[_frame_from_dict(f) for f in t.get("frames", [])],
            )
            for t in data.get("ticks", [])
        ]
        return cls(ticks)

    @property
    def tick_count(self) -> int:
        return len(self._ticks)

    @property
    def duration(self) -> float:
        if not self._ticks:
            return 0.0
        return self._ticks[-1].timestamp

    def play(self) -> Iterator[RecordedTick]:
        """Iterate through every tick with no delay."""
        yield from self._ticks

    def get_tick(self, index: int) -> Optional[RecordedTick]:
        if 0 <= index < len(self._ticks):
            return self._ticks[index]
        return None
