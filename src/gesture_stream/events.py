"""Typed event channels for pipeline consumers.

Each channel carries one event type. Consumers either subscribe a callback,
called synchronously in subscription order during the tick that produced
the event, or poll the channel's bounded queue with `drain()`.

When the queue is full the oldest event is dropped and `dropped` is
incremented; a slow poller loses history, never the newest event.
A callback that raises is logged and skipped so one consumer cannot break
the tick for the others.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Generic, TypeVar

logger = logging.getLogger("gesture_stream.events")

T = TypeVar("T")


class EventChannel(Generic[T]):
    """Bounded queue plus callback registry for one event type."""

    def __init__(self, name: str, capacity: int = 256):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self._queue: deque[T] = deque(maxlen=capacity)
        self._callbacks: list[Callable[[T], None]] = []
        self._dropped = 0
        self._published = 0

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._callbacks.append(callback)

        def unsubscribe():
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Callable[[T], None]):
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def publish(self, event: T):
        """Queue the event and deliver it to every subscriber."""
        if len(self._queue) == self._queue.maxlen:
            self._dropped += 1
            logger.debug("Channel %s full, dropping oldest event", self.name)
        self._queue.append(event)
        self._published += 1

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error("Channel %s subscriber %r failed: %s", self.name, callback, e)

    def drain(self) -> list[T]:
        """Return and remove every queued event, oldest first."""
        events = list(self._queue)
        self._queue.clear()
        return events

    def peek(self) -> list[T]:
        return list(self._queue)

    def resize(self, capacity: int):
        """Change the queue bound, keeping the newest events."""
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        overflow = max(0, len(self._queue) - capacity)
        self._dropped += overflow
        self._queue = deque(self._queue, maxlen=capacity)

    def clear(self):
        self._queue.clear()

    @property
    def capacity(self) -> int:
        return self._queue.maxlen or 0

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def published(self) -> int:
        return self._published

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def __len__(self) -> int:
        return len(self._queue)
