"""Multi-tick stability voting.

A single-frame classification is noisy. The stability window keeps the last
N per-tick candidate sets and only promotes a gesture for a hand once it won
at least ceil(ratio * N) of those ticks.
"""

from __future__ import annotations

import math
from collections import deque
from typing import Mapping

from gesture_stream.gestures import CANONICAL_ORDER, GestureCandidate, GestureType, StableGesture
from gesture_stream.landmarks import Handedness


def _canonical_rank(gesture: GestureType) -> int:
    try:
        return CANONICAL_ORDER.index(gesture)
    except ValueError:
        return len(CANONICAL_ORDER)


class StabilityWindow:
    """Sliding window of per-hand winning candidates.

    Usage:
        window = StabilityWindow(size=5, ratio=0.8)
        # once per tick, with each hand's selected candidate (if any):
        stable = window.push({Handedness.RIGHT: candidate}, now)
    """

    def __init__(self, size: int = 5, ratio: float = 0.8):
        if size < 1:
            raise ValueError("size must be at least 1")
        if not 0.0 < ratio <= 1.0:
            raise ValueError("ratio must be in (0, 1]")
        self._size = size
        self._ratio = ratio
        self._ticks: deque[dict[Handedness, GestureCandidate]] = deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._size

    @property
    def ratio(self) -> float:
        return self._ratio

    @property
    def required(self) -> int:
        """Ticks a gesture must win within the window to be promoted."""
        return max(1, math.ceil(self._ratio * self._size - 1e-9))

    def push(
        self, candidates: Mapping[Handedness, GestureCandidate], now: float
    ) -> list[StableGesture]:
        """Record this tick's winners and return any promoted gestures.

        Nothing is promoted until the window has filled. At most one gesture
        is returned per hand.
        """
        self._ticks.append(dict(candidates))
        if len(self._ticks) < self._size:
            return []

        hands: set[Handedness] = set()
        for tick in self._ticks:
            hands.update(tick)

        stable = []
        # Sorted so emission order is the same every run
        for hand in sorted(hands, key=lambda h: h.value):
            promoted = self._promote(hand, now)
            if promoted is not None:
                stable.append(promoted)
        return stable

    def _promote(self, hand: Handedness, now: float) -> StableGesture | None:
        counts: dict[GestureType, int] = {}
        totals: dict[GestureType, float] = {}
        latest: dict[GestureType, GestureCandidate] = {}

        for tick in self._ticks:
            candidate = tick.get(hand)
            if candidate is None:
                continue
            counts[candidate.type] = counts.get(candidate.type, 0) + 1
            totals[candidate.type] = totals.get(candidate.type, 0.0) + candidate.confidence
            latest[candidate.type] = candidate

        qualifying = [g for g, n in counts.items() if n >= self.required]
        if not qualifying:
            return None

        # Highest count, then highest mean confidence, then canonical order
        best = min(
            qualifying,
            key=lambda g: (-counts[g], -(totals[g] / counts[g]), _canonical_rank(g)),
        )
        last = latest[best]
        return StableGesture(
            type=best,
            hand=hand,
            confidence=totals[best] / counts[best],
            payload=last.payload,
            timestamp=now,
            frames=counts[best],
        )

    def resize(self, size: int, ratio: float | None = None):
        """Change the window length, keeping the newest ticks."""
        if size < 1:
            raise ValueError("size must be at least 1")
        if ratio is not None:
            if not 0.0 < ratio <= 1.0:
                raise ValueError("ratio must be in (0, 1]")
            self._ratio = ratio
        self._size = size
        self._ticks = deque(self._ticks, maxlen=size)

    def clear(self):
        self._ticks.clear()

    def __len__(self) -> int:
        return len(self._ticks)
