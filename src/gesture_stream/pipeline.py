"""Tick pipeline: landmark frames -> stable gesture events, trails and tier.

`GesturePipeline` owns every piece of per-session state (stability window,
cooldown table, trail buffers, performance governor) so nothing lives in
module globals and a pipeline can be stopped and restarted cleanly.

Within one `process()` call the stages always run in this order:

    classification/selection -> stability -> cooldown -> trails -> governor

Cooldown and stability see this tick's fresh candidates, and trails reflect
this tick's positions whatever the gesture outcome.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from gesture_stream.classifier import GestureClassifier
from gesture_stream.config import PipelineConfig
from gesture_stream.cooldown import CooldownTracker
from gesture_stream.errors import MalformedFrameError
from gesture_stream.events import EventChannel
from gesture_stream.gestures import GestureCandidate, GestureType, StableGesture
from gesture_stream.governor import PerformanceGovernor, PerformanceTier, TierChange
from gesture_stream.landmarks import Handedness, LandmarkFrame
from gesture_stream.metrics import MetricsCollector
from gesture_stream.profiler import PipelineProfiler
from gesture_stream.stability import StabilityWindow
from gesture_stream.trails import TrailSnapshot, TrailTracker, TrailUpdate

logger = logging.getLogger("gesture_stream.pipeline")


class HandsEventKind(Enum):
    FOUND = "found"
    LOST = "lost"


@dataclass(frozen=True)
class HandsEvent:
    """Published when hands enter or leave the accepted set of a tick."""
    kind: HandsEventKind
    hands: tuple[Handedness, ...]  # the hands that appeared or left
    present: tuple[Handedness, ...]  # every hand present after this tick
    timestamp: float


def _ordered(hands: Iterable[Handedness]) -> tuple[Handedness, ...]:
    return tuple(sorted(hands, key=lambda h: h.value))


@dataclass(frozen=True)
class TickResult:
    """Everything one tick produced."""
    timestamp: float
    tier: PerformanceTier
    candidates: dict[Handedness, GestureCandidate] = field(default_factory=dict)
    stable: tuple[StableGesture, ...] = ()
    emitted: tuple[StableGesture, ...] = ()
    trails: dict[Handedness, TrailSnapshot] = field(default_factory=dict)
    tier_change: Optional[TierChange] = None
    skipped: int = 0  # malformed or duplicate hand frames
    hands: tuple[Handedness, ...] = ()
    fingertips: dict[Handedness, tuple[tuple[float, float], ...]] = field(default_factory=dict)
    hand_events: tuple[HandsEvent, ...] = ()

    def _stable_of(self, gesture: GestureType, hand: Optional[Handedness]) -> Optional[StableGesture]:
        for stable in self.stable:
            if stable.type is gesture and (hand is None or stable.hand is hand):
                return stable
        return None

    def pointing(self, hand: Optional[Handedness] = None) -> Optional[tuple[float, float]]:
        """Unit pointing direction of a stable point gesture, or None.

        Without `hand`, the first stable point of the tick (left before right).
        """
        gesture = self._stable_of(GestureType.POINT, hand)
        if gesture is None:
            return None
        return gesture.payload.unit()

    def pinch_strength(self, hand: Optional[Handedness] = None) -> float:
        """Strength of a stable pinch in [0, 1]; 0 when nobody is pinching."""
        gesture = self._stable_of(GestureType.PINCH, hand)
        return gesture.payload.strength if gesture is not None else 0.0


@dataclass
class PipelineStats:
    """Runtime statistics."""
    ticks: int
    emitted: int
    suppressed: int
    tier: str
    fps: float
    active_trails: int
    profiler_summary: dict = field(default_factory=dict)
    dropped_events: dict = field(default_factory=dict)


class GesturePipeline:
    """Per-session context that turns landmark frames into events.

    Usage:
        pipeline = GesturePipeline(PipelineConfig(cooldown_seconds=0.25))
        pipeline.gestures.subscribe(lambda g: print(g.type.value, g.hand.value))

        # once per rendering tick:
        result = pipeline.process(frames)

        # when tracking stops:
        pipeline.stop()
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        classifier: Optional[GestureClassifier] = None,
        metrics: Optional[MetricsCollector] = None,
        enable_profiling: bool = True,
    ):
        self._config = config or PipelineConfig()
        self._pending: Optional[PipelineConfig] = None

        self.classifier = classifier or GestureClassifier(self._config)
        self.classifier.config = self._config
        self.stability = StabilityWindow(self._config.stability_frames, self._config.stability_ratio)
        self.cooldown = CooldownTracker(self._config.cooldown_seconds)
        self.trails = TrailTracker.from_config(self._config)
        self.governor = PerformanceGovernor.from_config(self._config)
        self.profiler = PipelineProfiler(enabled=enable_profiling)
        self.metrics = metrics

        capacity = self._config.channel_capacity
        self.gestures: EventChannel[StableGesture] = EventChannel("gestures", capacity)
        self.trail_updates: EventChannel[TrailUpdate] = EventChannel("trails", capacity)
        self.tiers: EventChannel[TierChange] = EventChannel("tiers", capacity)
        self.hands: EventChannel[HandsEvent] = EventChannel("hands", capacity)

        self._present: frozenset = frozenset()
        self._last: Optional[TickResult] = None
        self._ticks = 0
        self._emitted = 0
        self._suppressed = 0

    # --------- configuration ---------

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def reconfigure(self, config: PipelineConfig):
        """Queue a new config. It takes effect at the start of the next tick."""
        if not isinstance(config, PipelineConfig):
            raise TypeError("reconfigure() expects a PipelineConfig")
        self._pending = config

    def _apply_pending(self):
        config, self._pending = self._pending, None
        if config is None:
            return

        self._config = config
        self.classifier.config = config
        if (config.stability_frames, config.stability_ratio) != (self.stability.size, self.stability.ratio):
            self.stability.resize(config.stability_frames, config.stability_ratio)
        self.cooldown.interval = config.cooldown_seconds
        self.trails.configure(config)
        self.governor.configure(config)
        for channel in self._channels():
            if channel.capacity != config.channel_capacity:
                channel.resize(config.channel_capacity)
        logger.info("Applied new pipeline configuration")

    # --------- per tick ---------

    def process(
        self, frames: Iterable[LandmarkFrame], now: Optional[float] = None
    ) -> TickResult:
        """Run one tick over this tick's hand frames.

        Args:
            frames: Zero or more frames from the provider. An empty input is
                the normal "no hands visible" case: trails keep fading and
                the stability window keeps sliding.
            now: Tick timestamp in seconds. Defaults to time.monotonic().

        Returns:
            The TickResult for this tick; also kept as `last_result`.
        """
        t_start = time.perf_counter()
        now = time.monotonic() if now is None else now
        self._apply_pending()
        self._ticks += 1

        tier = self.governor.tier
        hands, skipped = self._accept(frames)

        with self.profiler.stage("classification"):
            candidates: dict[Handedness, GestureCandidate] = {}
            for hand, frame in hands.items():
                candidate = self.classifier.select(frame, tier)
                if candidate is not None:
                    candidates[hand] = candidate

        with self.profiler.stage("stability"):
            stable = self.stability.push(candidates, now)

        with self.profiler.stage("cooldown"):
            emitted = []
            for gesture in stable:
                if self.cooldown.allow(gesture, now):
                    emitted.append(gesture)
                else:
                    self._suppressed += 1
                    if self.metrics:
                        self.metrics.record_suppressed(gesture.type.value)

        with self.profiler.stage("trails"):
            mirror = self._config.mirror_display
            positions = {hand: frame.palm_center(mirror) for hand, frame in hands.items()}
            max_length = max(1, int(round(self._config.trail_max_length * tier.workload_scale)))
            self.trails.update(positions, now, max_length=max_length)
            snapshots = self.trails.snapshot(now)

        with self.profiler.stage("governor"):
            change = self.governor.tick(now)

        hand_events = self._presence(hands, now)

        result = TickResult(
            timestamp=now,
            tier=self.governor.tier,
            candidates=candidates,
            stable=tuple(stable),
            emitted=tuple(emitted),
            trails=snapshots,
            tier_change=change,
            skipped=skipped,
            hands=_ordered(hands),
            fingertips={hand: frame.fingertips(mirror) for hand, frame in hands.items()},
            hand_events=hand_events,
        )
        self._last = result

        self._publish(result)

        elapsed = time.perf_counter() - t_start
        self.profiler.record("total", elapsed * 1000.0)
        if self.metrics:
            self.metrics.record_tick(elapsed, len(hands))
        return result

    def _accept(self, frames: Iterable[LandmarkFrame]) -> tuple[dict[Handedness, LandmarkFrame], int]:
        """Validate frames and key them by hand. Returns (hands, skipped)."""
        hands: dict[Handedness, LandmarkFrame] = {}
        skipped = 0
        for frame in frames:
            try:
                frame.validate()
            except MalformedFrameError as e:
                skipped += 1
                logger.warning("Skipping malformed %s hand frame: %s",
                               frame.handedness.value if frame.handedness else "unknown", e)
                if self.metrics:
                    self.metrics.record_malformed()
                continue

            existing = hands.get(frame.handedness)
            if existing is not None:
                skipped += 1
                logger.warning("Two %s hands in one tick, keeping the more confident one",
                               frame.handedness.value)
                if existing.confidence >= frame.confidence:
                    continue
            hands[frame.handedness] = frame
        return hands, skipped

    def _presence(self, hands: dict[Handedness, LandmarkFrame], now: float) -> tuple[HandsEvent, ...]:
        """Found/lost transitions of the accepted hand set."""
        present = frozenset(hands)
        found = present - self._present
        lost = self._present - present
        self._present = present

        events = []
        if lost:
            events.append(HandsEvent(HandsEventKind.LOST, _ordered(lost), _ordered(present), now))
            logger.debug("Hands lost: %s", ", ".join(h.value for h in _ordered(lost)))
        if found:
            events.append(HandsEvent(HandsEventKind.FOUND, _ordered(found), _ordered(present), now))
            logger.debug("Hands found: %s", ", ".join(h.value for h in _ordered(found)))
        return tuple(events)

    def _publish(self, result: TickResult):
        for event in result.hand_events:
            self.hands.publish(event)

        for gesture in result.emitted:
            self._emitted += 1
            if self.metrics:
                self.metrics.record_emitted(gesture.type.value)
            self.gestures.publish(gesture)

        self.trail_updates.publish(TrailUpdate(timestamp=result.timestamp, snapshots=result.trails))

        if result.tier_change is not None:
            self._publish_tier(result.tier_change)

    def _publish_tier(self, change: TierChange):
        if self.metrics:
            self.metrics.record_tier(change.new.value)
        self.tiers.publish(change)

    # --------- state ---------

    @property
    def last_result(self) -> Optional[TickResult]:
        """Result of the most recent completed tick (None before the first)."""
        return self._last

    @property
    def tier(self) -> PerformanceTier:
        return self.governor.tier

    def stop(self):
        """Tracking stopped: clear stability, cooldowns and trails.

        The governor keeps its tier until `reset()` or a session restart.
        """
        self.stability.clear()
        self.cooldown.clear()
        self.trails.clear()
        self._present = frozenset()
        self._last = None
        logger.debug("Pipeline state cleared")

    def reset_tier(self, now: Optional[float] = None) -> Optional[TierChange]:
        """Put the governor back to HIGH with a fresh measurement window.

        A tier that was not HIGH produces a TierChange, published on `tiers`
        and recorded in the metrics like a measured transition.
        """
        now = time.monotonic() if now is None else now
        change = self.governor.reset(now)
        if change is not None:
            self._publish_tier(change)
        elif self.metrics:
            self.metrics.record_tier(PerformanceTier.HIGH.value, changed=False)
        return change

    def reset(self):
        """Clear all state, including the performance tier and statistics.

        Queued events are dropped; a tier that returns to HIGH is published
        after that, so subscribers and the metrics gauge see the reset.
        """
        self.stop()
        self.profiler.reset()
        for channel in self._channels():
            channel.clear()
        self._ticks = 0
        self._emitted = 0
        self._suppressed = 0
        self.reset_tier()

    def _channels(self) -> tuple[EventChannel, ...]:
        return (self.hands, self.gestures, self.trail_updates, self.tiers)

    @property
    def stats(self) -> PipelineStats:
        return PipelineStats(
            ticks=self._ticks,
            emitted=self._emitted,
            suppressed=self._suppressed,
            tier=self.governor.tier.value,
            fps=self.governor.fps,
            active_trails=len(self.trails),
            profiler_summary=self.profiler.summary(),
            dropped_events={
                channel.name: channel.dropped
                for channel in self._channels()
            },
        )
