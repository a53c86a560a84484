"""Prometheus-style counters for the gesture pipeline.

Renders the text exposition format directly; nothing here serves HTTP.
Embed `MetricsCollector.render()` in whatever endpoint the host app has.

Tracked metrics:
- gesture_stream_ticks_total (counter)
- gesture_stream_hands_total (counter)
- gesture_stream_malformed_frames_total (counter)
- gesture_stream_gestures_emitted_total (counter, by gesture)
- gesture_stream_gestures_suppressed_total (counter, by gesture)
- gesture_stream_tier_changes_total (counter)
- gesture_stream_performance_tier (gauge, 2=high 1=medium 0=low)
- gesture_stream_tick_latency_seconds (histogram)
"""

from __future__ import annotations

from collections import Counter

_TIER_LEVEL = {"high": 2, "medium": 1, "low": 0}


class _Histogram:
    """Cumulative histogram with fixed buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0

    def observe(self, value: float):
        self.count += 1
        self.sum += value
        for i, b in enumerate(self.buckets):
            if value <= b:
                self.bucket_counts[i] += 1
                break

    def reset(self):
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        cumulative = 0
        for b, n in zip(self.buckets, self.bucket_counts):
            cumulative += n
            lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
        lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
        lines.append(f"{name}_sum {self.sum:.6f}")
        lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Counts what the pipeline did. Single-threaded, like the pipeline."""

    def __init__(self):
        self._emitted: Counter = Counter()
        self._suppressed: Counter = Counter()
        self._ticks_total = 0
        self._hands_total = 0
        self._malformed_total = 0
        self._tier_changes = 0
        self._tier = "high"

        # Tick latency: 0.5 ms to 50 ms
        self._latency = _Histogram(
            [0.0005, 0.001, 0.002, 0.005, 0.010, 0.016, 0.033, 0.050]
        )

    def record_tick(self, latency_seconds: float, hands: int):
        self._ticks_total += 1
        self._hands_total += hands
        self._latency.observe(latency_seconds)

    def record_malformed(self, count: int = 1):
        self._malformed_total += count

    def record_emitted(self, gesture: str):
        self._emitted[gesture] += 1

    def record_suppressed(self, gesture: str):
        self._suppressed[gesture] += 1

    def record_tier(self, tier: str, changed: bool = True):
        self._tier = tier
        if changed:
            self._tier_changes += 1

    def _counter(self, lines: list[str], name: str, help_text: str, value: int):
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} counter")
        lines.append(f"{name} {value}")
        lines.append("")

    def _labelled(self, lines: list[str], name: str, help_text: str, counts: Counter):
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} counter")
        for gesture, count in sorted(counts.items()):
            lines.append(f'{name}{{gesture="{gesture}"}} {count}')
        lines.append("")

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        self._counter(lines, "gesture_stream_ticks_total", "Ticks processed", self._ticks_total)
        self._counter(lines, "gesture_stream_hands_total", "Hands received across all ticks", self._hands_total)
        self._counter(
            lines, "gesture_stream_malformed_frames_total",
            "Hand frames skipped as malformed", self._malformed_total,
        )
        self._labelled(
            lines, "gesture_stream_gestures_emitted_total",
            "Stable gestures emitted by type", self._emitted,
        )
        self._labelled(
            lines, "gesture_stream_gestures_suppressed_total",
            "Stable gestures suppressed by cooldown", self._suppressed,
        )
        self._counter(
            lines, "gesture_stream_tier_changes_total",
            "Performance tier transitions", self._tier_changes,
        )

        lines.append("# HELP gesture_stream_performance_tier Current tier (2=high, 1=medium, 0=low)")
        lines.append("# TYPE gesture_stream_performance_tier gauge")
        lines.append(f"gesture_stream_performance_tier {_TIER_LEVEL.get(self._tier, 0)}")
        lines.append("")

        lines.append(self._latency.render(
            "gesture_stream_tick_latency_seconds",
            "Pipeline tick latency in seconds",
        ))
        lines.append("")

        return "\n".join(lines) + "\n"

    def reset(self):
        """Zero all counters and the histogram. The tier gauge goes back to high."""
        self._emitted.clear()
        self._suppressed.clear()
        self._ticks_total = 0
        self._hands_total = 0
        self._malformed_total = 0
        self._tier_changes = 0
        self._tier = "high"
        self._latency.reset()

    @property
    def emitted_counts(self) -> dict[str, int]:
        return dict(self._emitted)

    @property
    def suppressed_counts(self) -> dict[str, int]:
        return dict(self._suppressed)

    @property
    def ticks_total(self) -> int:
        return self._ticks_total

    @property
    def malformed_total(self) -> int:
        return self._malformed_total

    @property
    def tier(self) -> str:
        """Tier reported by the gauge."""
        return self._tier

    @property
    def tier_changes(self) -> int:
        return self._tier_changes
