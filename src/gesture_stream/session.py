"""Async tick driver joining a landmark provider to a pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gesture_stream.events import EventChannel
from gesture_stream.pipeline import GesturePipeline, TickResult
from gesture_stream.providers import LandmarkProvider

logger = logging.getLogger("gesture_stream.session")


class SessionState(Enum):
    STARTED = "started"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SessionEvent:
    """Published on `TrackingSession.lifecycle` when tracking starts or stops."""
    state: SessionState
    timestamp: float
    ticks: int = 0  # ticks applied before a stop


class TrackingSession:
    """Runs the pipeline once per provider result.

    The only suspension point in a tick is waiting for the provider. While
    that wait is pending, `last_result` still holds the previous tick. A
    result that arrives after `stop()` (or after a stop and restart) belongs
    to an older generation and is dropped instead of being applied.

    Usage:
        session = TrackingSession(MediaPipeProvider(), GesturePipeline())
        session.lifecycle.subscribe(lambda e: print(e.state.value))
        await session.start()
        await session.run()
    """

    def __init__(self, provider: LandmarkProvider, pipeline: Optional[GesturePipeline] = None):
        self.provider = provider
        self.pipeline = pipeline or GesturePipeline()
        self._generation = 0
        self._running = False
        self._ticks = 0
        self.lifecycle: EventChannel[SessionEvent] = EventChannel(
            "lifecycle", self.pipeline.config.channel_capacity
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks(self) -> int:
        """Ticks applied to the pipeline since the last start."""
        return self._ticks

    @property
    def last_result(self) -> Optional[TickResult]:
        return self.pipeline.last_result

    async def start(self):
        """Start the provider, then put the pipeline back to the HIGH tier.

        ProviderUnavailableError propagates to the caller and leaves the
        pipeline untouched.
        """
        try:
            await self.provider.start()
        except Exception:
            logger.exception("Provider %s failed to start", type(self.provider).__name__)
            raise
        self.pipeline.reset_tier()
        self._generation += 1
        self._ticks = 0
        self._running = True
        logger.info("Tracking session started")
        self.lifecycle.publish(SessionEvent(SessionState.STARTED, time.monotonic()))

    async def tick(self, now: Optional[float] = None) -> Optional[TickResult]:
        """Wait for the provider's next frames and run one pipeline tick.

        Returns None when the session is stopped or the result went stale
        while it was pending.
        """
        if not self._running:
            return None

        generation = self._generation
        frames = await self.provider.next_frames()

        if not self._running or generation != self._generation:
            logger.debug("Discarding perception result from a stopped session")
            return None

        if now is None:
            now = self.provider.timestamp
        if now is None:
            now = time.monotonic()

        self._ticks += 1
        return self.pipeline.process(frames, now)

    def stop(self):
        """Stop tracking. Clears stability, cooldowns and trails immediately.

        Synchronous so it can be called from a subscriber callback or a
        signal handler; call `close()` afterwards to release the provider.
        """
        if not self._running:
            return
        self._running = False
        self._generation += 1
        self.pipeline.stop()
        logger.info("Tracking session stopped after %d ticks", self._ticks)
        self.lifecycle.publish(SessionEvent(SessionState.STOPPED, time.monotonic(), self._ticks))

    async def close(self):
        """Stop if needed and release the provider."""
        self.stop()
        await self.provider.stop()

    async def run(self, max_ticks: Optional[int] = None) -> int:
        """Tick until stopped, the provider runs dry, or `max_ticks` is reached.

        Returns the number of ticks applied.
        """
        applied = 0
        while self._running and not self.provider.exhausted:
            if max_ticks is not None and applied >= max_ticks:
                break
            if await self.tick() is not None:
                applied += 1
        return applied
