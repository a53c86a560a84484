"""Fading positional trails per hand.

Each tracked hand leaves a trail of palm positions. Points age out after
`fade_duration` seconds and the trail is capped at `max_length` points.
When a hand disappears its trail keeps aging with no new points until it is
empty, then the hand is forgotten.

Usage:
    trails = TrailTracker(max_length=30, fade_duration=1.0)
    # once per tick:
    trails.update({Handedness.RIGHT: (0.4, 0.6)}, now)
    for snapshot in trails.snapshot(now).values():
        draw(snapshot.points)
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Mapping, Optional

from gesture_stream.landmarks import Handedness


@dataclass(frozen=True)
class TrailPoint:
    x: float
    y: float
    timestamp: float
    velocity: float  # normalized units per second, from the previous point


@dataclass(frozen=True)
class RenderedTrailPoint:
    """A trail point with the fields a renderer needs, derived at snapshot time."""
    x: float
    y: float
    timestamp: float
    velocity: float
    age: float
    opacity: float
    size: float


@dataclass(frozen=True)
class TrailSnapshot:
    hand: Handedness
    points: tuple[RenderedTrailPoint, ...]

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class TrailUpdate:
    """Published once per tick with every live trail."""
    timestamp: float
    snapshots: dict[Handedness, TrailSnapshot]


class TrailBuffer:
    """Time-ordered trail points for one hand."""

    def __init__(self):
        self._points: deque[TrailPoint] = deque()

    def append(self, x: float, y: float, timestamp: float) -> TrailPoint:
        velocity = 0.0
        if self._points:
            prev = self._points[-1]
            dt = timestamp - prev.timestamp
            if dt > 0:
                velocity = math.hypot(x - prev.x, y - prev.y) / dt
        point = TrailPoint(x=x, y=y, timestamp=timestamp, velocity=velocity)
        self._points.append(point)
        return point

    def prune(self, now: float, max_length: int, max_age: float):
        """Drop points from the front until both limits hold."""
        points = self._points
        while points and (len(points) > max_length or now - points[0].timestamp > max_age):
            points.popleft()

    @property
    def points(self) -> tuple[TrailPoint, ...]:
        return tuple(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __bool__(self) -> bool:
        return bool(self._points)


class TrailTracker:
    """Maintains one TrailBuffer per hand."""

    def __init__(
        self,
        max_length: int = 30,
        fade_duration: float = 1.0,
        base_size: float = 8.0,
        velocity_multiplier: float = 0.5,
    ):
        self.max_length = max_length
        self.fade_duration = fade_duration
        self.base_size = base_size
        self.velocity_multiplier = velocity_multiplier
        self._buffers: dict[Handedness, TrailBuffer] = {}

    @classmethod
    def from_config(cls, config) -> TrailTracker:
        return cls(
            max_length=config.trail_max_length,
            fade_duration=config.trail_fade_seconds,
            base_size=config.trail_base_size,
            velocity_multiplier=config.trail_velocity_multiplier,
        )

    def configure(self, config):
        self.max_length = config.trail_max_length
        self.fade_duration = config.trail_fade_seconds
        self.base_size = config.trail_base_size
        self.velocity_multiplier = config.trail_velocity_multiplier

    def update(
        self,
        positions: Mapping[Handedness, tuple[float, float]],
        now: float,
        max_length: Optional[int] = None,
    ):
        """Add this tick's positions and age every trail.

        Args:
            positions: Palm position of each hand present this tick.
            now: Tick timestamp in seconds.
            max_length: Override for the length cap (e.g. scaled by tier).
        """
        limit = max(1, max_length if max_length is not None else self.max_length)

        for hand, (x, y) in positions.items():
            buffer = self._buffers.get(hand)
            if buffer is None:
                buffer = self._buffers[hand] = TrailBuffer()
            buffer.append(float(x), float(y), now)

        for hand in list(self._buffers):
            buffer = self._buffers[hand]
            buffer.prune(now, limit, self.fade_duration)
            if not buffer:
                del self._buffers[hand]

    def opacity(self, age: float) -> float:
        return max(0.0, 1.0 - age / self.fade_duration)

    def size(self, velocity: float, opacity: float) -> float:
        return self.base_size * (1.0 + velocity * self.velocity_multiplier) * opacity

    def snapshot(self, now: float) -> dict[Handedness, TrailSnapshot]:
        """Render-ready copy of every live trail."""
        snapshots = {}
        for hand, buffer in self._buffers.items():
            rendered = []
            for p in buffer.points:
                age = max(0.0, now - p.timestamp)
                opacity = self.opacity(age)
                rendered.append(RenderedTrailPoint(
                    x=p.x,
                    y=p.y,
                    timestamp=p.timestamp,
                    velocity=p.velocity,
                    age=age,
                    opacity=opacity,
                    size=self.size(p.velocity, opacity),
                ))
            snapshots[hand] = TrailSnapshot(hand=hand, points=tuple(rendered))
        return snapshots

    def get(self, hand: Handedness) -> Optional[TrailBuffer]:
        return self._buffers.get(hand)

    @property
    def hands(self) -> list[Handedness]:
        return list(self._buffers)

    def clear(self, hand: Optional[Handedness] = None):
        if hand is not None:
            self._buffers.pop(hand, None)
        else:
            self._buffers.clear()

    def __len__(self) -> int:
        return len(self._buffers)
