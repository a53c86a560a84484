"""Per-stage timing for the tick pipeline.

Wraps each stage of `GesturePipeline.process()` with a high-resolution
timer and keeps a rolling window of samples per stage.
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator


@dataclass
class StageStats:
    """Timing statistics for a single pipeline stage."""
    name: str
    avg_ms: float
    min_ms: float
    max_ms: float
    p95_ms: float
    call_count: int


class PipelineProfiler:
    """Rolling stage timings.

    Usage:
        profiler = PipelineProfiler()

        with profiler.stage("classification"):
            candidates = classifier.select(frame)

        print(profiler.summary())
    """

    STAGES = (
        "classification",
        "stability",
        "cooldown",
        "trails",
        "governor",
        "total",
    )

    def __init__(self, window_size: int = 120, enabled: bool = True):
        self._window_size = window_size
        self._timings: dict[str, deque[float]] = {}
        self._counts: dict[str, int] = {}
        self.enabled = enabled
        for name in self.STAGES:
            self._add_stage(name)

    def _add_stage(self, name: str):
        self._timings[name] = deque(maxlen=self._window_size)
        self._counts[name] = 0

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block as one sample of `name`."""
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, (time.perf_counter() - t0) * 1000.0)

    def record(self, name: str, elapsed_ms: float):
        """Add a sample measured elsewhere."""
        if not self.enabled:
            return
        if name not in self._timings:
            self._add_stage(name)
        self._timings[name].append(elapsed_ms)
        self._counts[name] += 1

    def get_stage_stats(self, name: str) -> StageStats | None:
        timings = self._timings.get(name)
        if not timings:
            return None

        ordered = sorted(timings)
        n = len(ordered)
        return StageStats(
            name=name,
            avg_ms=sum(ordered) / n,
            min_ms=ordered[0],
            max_ms=ordered[-1],
            p95_ms=ordered[min(n - 1, int(n * 0.95))],
            call_count=self._counts.get(name, 0),
        )

    def summary(self) -> dict[str, dict]:
        """Stats for every stage that has samples, rounded for display."""
        result = {}
        for name in self._timings:
            stats = self.get_stage_stats(name)
            if stats is None:
                continue
            result[name] = {
                "avg_ms": round(stats.avg_ms, 3),
                "min_ms": round(stats.min_ms, 3),
                "max_ms": round(stats.max_ms, 3),
                "p95_ms": round(stats.p95_ms, 3),
                "calls": stats.call_count,
            }
        return result

    def reset(self):
        for samples in self._timings.values():
            samples.clear()
        for name in self._counts:
            self._counts[name] = 0
