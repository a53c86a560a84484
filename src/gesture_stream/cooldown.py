"""Per-(gesture, hand) emission throttling."""

from __future__ import annotations

from typing import Optional

from gesture_stream.gestures import GestureType, StableGesture
from gesture_stream.landmarks import Handedness


class CooldownTracker:
    """Suppresses repeats of the same gesture from the same hand.

    A stable gesture may be re-promoted every tick while it is held; the
    tracker lets one through, then blocks that (type, hand) pair until
    `interval` seconds have passed. Suppressed gestures do not refresh the
    timestamp.
    """

    def __init__(self, interval: float = 0.2):
        self.interval = interval
        self._last_emitted: dict[tuple[GestureType, Handedness], float] = {}

    def allow(self, gesture: StableGesture, now: Optional[float] = None) -> bool:
        """Return True and record the emission, or False if still cooling down."""
        ts = gesture.timestamp if now is None else now
        key = (gesture.type, gesture.hand)
        last = self._last_emitted.get(key)
        if last is not None and (ts - last) < self.interval:
            return False
        self._last_emitted[key] = ts
        return True

    def last_emitted(self, gesture: GestureType, hand: Handedness) -> Optional[float]:
        return self._last_emitted.get((gesture, hand))

    def clear(self):
        self._last_emitted.clear()

    def __len__(self) -> int:
        return len(self._last_emitted)
