"""Adaptive performance tier based on the measured tick rate.

The governor counts ticks and, once per measurement window (one second by
default), turns the count into a rate and moves the tier at most one step:

    HIGH  -> MEDIUM  below 45 fps
    MEDIUM -> LOW    below 30 fps
    LOW   -> MEDIUM  above 55 fps
    MEDIUM -> HIGH   above 58 fps

The upgrade thresholds sit well above the downgrade ones so a rate hovering
around a boundary does not flip the tier every window. Consumers read
`tier` or `workload_scale` once per tick and scale their own work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger("gesture_stream.governor")


class PerformanceTier(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def workload_scale(self) -> float:
        """Fraction of full per-tick work consumers should aim for."""
        return _WORKLOAD_SCALE[self]


_WORKLOAD_SCALE = {
    PerformanceTier.HIGH: 1.0,
    PerformanceTier.MEDIUM: 0.7,
    PerformanceTier.LOW: 0.5,
}


@dataclass(frozen=True)
class TierChange:
    """Published when the governor moves to another tier."""
    old: PerformanceTier
    new: PerformanceTier
    fps: float
    timestamp: float


class PerformanceGovernor:
    """Tick-rate measurement with a hysteresis tier state machine."""

    def __init__(
        self,
        interval: float = 1.0,
        downgrade_medium_fps: float = 45.0,
        downgrade_low_fps: float = 30.0,
        upgrade_medium_fps: float = 55.0,
        upgrade_high_fps: float = 58.0,
    ):
        self.interval = interval
        self.downgrade_medium_fps = downgrade_medium_fps
        self.downgrade_low_fps = downgrade_low_fps
        self.upgrade_medium_fps = upgrade_medium_fps
        self.upgrade_high_fps = upgrade_high_fps

        self._tier = PerformanceTier.HIGH
        self._fps = 0.0
        self._frames = 0
        self._window_start: Optional[float] = None

    @classmethod
    def from_config(cls, config) -> PerformanceGovernor:
        return cls(
            interval=config.governor_interval,
            downgrade_medium_fps=config.downgrade_medium_fps,
            downgrade_low_fps=config.downgrade_low_fps,
            upgrade_medium_fps=config.upgrade_medium_fps,
            upgrade_high_fps=config.upgrade_high_fps,
        )

    def configure(self, config):
        """Adopt new thresholds without losing the current tier or window."""
        self.interval = config.governor_interval
        self.downgrade_medium_fps = config.downgrade_medium_fps
        self.downgrade_low_fps = config.downgrade_low_fps
        self.upgrade_medium_fps = config.upgrade_medium_fps
        self.upgrade_high_fps = config.upgrade_high_fps

    def tick(self, now: float) -> Optional[TierChange]:
        """Count one tick. Returns a TierChange when the tier moves."""
        if self._window_start is None:
            self._window_start = now
            return None

        self._frames += 1
        elapsed = now - self._window_start
        if elapsed < self.interval:
            return None

        self._fps = self._frames / elapsed
        self._frames = 0
        self._window_start = now
        return self._evaluate(now)

    def _evaluate(self, now: float) -> Optional[TierChange]:
        old = self._tier
        fps = self._fps

        if old is PerformanceTier.HIGH and fps < self.downgrade_medium_fps:
            new = PerformanceTier.MEDIUM
        elif old is PerformanceTier.MEDIUM and fps < self.downgrade_low_fps:
            new = PerformanceTier.LOW
        elif old is PerformanceTier.LOW and fps > self.upgrade_medium_fps:
            new = PerformanceTier.MEDIUM
        elif old is PerformanceTier.MEDIUM and fps > self.upgrade_high_fps:
            new = PerformanceTier.HIGH
        else:
            return None

        self._tier = new
        logger.info("Performance tier %s -> %s (%.1f fps)", old.value, new.value, fps)
        return TierChange(old=old, new=new, fps=fps, timestamp=now)

    def reset(self, now: float = 0.0) -> Optional[TierChange]:
        """Back to HIGH with an empty measurement window.

        Returns the TierChange when the tier was not already HIGH, so callers
        can publish it like any other transition.
        """
        old = self._tier
        self._tier = PerformanceTier.HIGH
        self._fps = 0.0
        self._frames = 0
        self._window_start = None
        if old is PerformanceTier.HIGH:
            return None
        logger.info("Performance tier %s -> %s (reset)", old.value, PerformanceTier.HIGH.value)
        return TierChange(old=old, new=PerformanceTier.HIGH, fps=0.0, timestamp=now)

    @property
    def tier(self) -> PerformanceTier:
        return self._tier

    @property
    def fps(self) -> float:
        """Rate measured over the last completed window (0 before the first)."""
        return self._fps

    @property
    def workload_scale(self) -> float:
        return self._tier.workload_scale
