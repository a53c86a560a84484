"""Perception providers: where landmark frames come from.

A provider is started once, then asked for the current tick's hand frames.
Hard failures (no inference library, camera missing or busy, permission
denied) raise ProviderUnavailableError from `start()`. "No hands visible"
is an empty list, never an error.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from gesture_stream.errors import ProviderUnavailableError
from gesture_stream.landmarks import LandmarkFrame
from gesture_stream.recorder import FramePlayer

try:
    import cv2
except ImportError:
    cv2 = None

try:
    import mediapipe as mp
except ImportError:
    mp = None

logger = logging.getLogger("gesture_stream.providers")


class LandmarkProvider(ABC):
    """Source of per-tick LandmarkFrames."""

    async def start(self):
        """Acquire devices/models. Raise ProviderUnavailableError on failure."""

    @abstractmethod
    async def next_frames(self) -> list[LandmarkFrame]:
        """Wait for and return the hand frames of the next tick."""

    async def stop(self):
        """Release devices/models."""

    @property
    def exhausted(self) -> bool:
        """True when the provider will never produce another tick."""
        return False

    @property
    def timestamp(self) -> Optional[float]:
        """Source timestamp of the last returned tick, if the source has one."""
        return None


class MediaPipeProvider(LandmarkProvider):
    """Camera capture with OpenCV and hand landmarks from MediaPipe Hands.

    Capture and inference run in a worker thread so the event loop stays
    free while a frame is being processed. `stop()` waits for a detection
    already running in that thread before it releases the camera and model.
    """

    def __init__(
        self,
        camera_index: int = 0,
        max_hands: int = 2,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        self.camera_index = camera_index
        self.max_hands = max_hands
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self._capture = None
        self._hands = None
        self._lock = threading.Lock()  # held by the worker for read + inference

    async def start(self):
        if mp is None:
            raise ProviderUnavailableError(
                "mediapipe is required. Install with: pip install mediapipe"
            )
        if cv2 is None:
            raise ProviderUnavailableError(
                "opencv-python is required. Install with: pip install opencv-python"
            )

        capture = await asyncio.to_thread(cv2.VideoCapture, self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise ProviderUnavailableError(
                f"Could not open camera {self.camera_index} (missing, busy or permission denied)"
            )

        self._capture = capture
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=self.max_hands,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
        )
        logger.info("Camera %d opened", self.camera_index)

    async def next_frames(self) -> list[LandmarkFrame]:
        if self._capture is None or self._hands is None:
            raise RuntimeError("MediaPipeProvider not started. Call start() first.")
        return await asyncio.to_thread(self._detect_once)

    def _detect_once(self) -> list[LandmarkFrame]:
        with self._lock:
            capture, hands = self._capture, self._hands
            if capture is None or hands is None:
                # stopped while this call was queued
                return []
            ok, frame_bgr = capture.read()
            if not ok:
                logger.debug("Camera returned no frame")
                return []
            frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
            results = hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return []

        handedness = results.multi_handedness or []
        frames = []
        for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
            label, score = None, 0.0
            if i < len(handedness) and handedness[i].classification:
                category = handedness[i].classification[0]
                label, score = category.label, category.score
            points = [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark]
            frames.append(LandmarkFrame.from_points(points, handedness=label, confidence=score))
        return frames

    async def stop(self):
        await asyncio.to_thread(self._lock.acquire)
        try:
            hands, self._hands = self._hands, None
            capture, self._capture = self._capture, None
            if hands is not None:
                hands.close()
            if capture is not None:
                capture.release()
                logger.info("Camera %d released", self.camera_index)
        finally:
            self._lock.release()


class ReplayProvider(LandmarkProvider):
    """Feeds a recording back one tick at a time.

    With `realtime`, each call waits until the recorded tick is due, scaled
    by `speed`; otherwise ticks are returned as fast as they are asked for.
    """

    def __init__(self, player: FramePlayer, realtime: bool = False, speed: float = 1.0):
        self._player = player
        self._realtime = realtime
        self._speed = speed
        self._ticks = list(player.play())
        self._index = 0
        self._timestamp: Optional[float] = None
        self._started_at: Optional[float] = None

    async def start(self):
        self._index = 0
        self._timestamp = None
        self._started_at = asyncio.get_running_loop().time()

    async def next_frames(self) -> list[LandmarkFrame]:
        if self.exhausted:
            return []

        tick = self._ticks[self._index]
        self._index += 1

        if self._realtime and self._started_at is not None:
            loop = asyncio.get_running_loop()
            delay = self._started_at + tick.timestamp / self._speed - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

        self._timestamp = tick.timestamp
        return list(tick.frames)

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._ticks)

    @property
    def timestamp(self) -> Optional[float]:
        return self._timestamp
