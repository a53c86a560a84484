"""Hand landmark frames as delivered by a perception provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from gesture_stream.errors import MalformedFrameError

logger = logging.getLogger("gesture_stream.landmarks")


class Landmark:
    """MediaPipe hand landmark indices.

    Each landmark is (x, y, z) with x/y normalized to [0, 1] relative to the
    source image and y growing downward, so a smaller y is higher on screen.
    """

    WRIST = 0
    THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
    INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
    MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
    RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
    PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

    TIPS = (THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP)

    COUNT = 21
    DIM = 3  # x, y, z


class Handedness(Enum):
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, label: object) -> Optional[Handedness]:
        """Parse a provider label such as "Left" or "right". Returns None if unknown."""
        if isinstance(label, Handedness):
            return label
        if not isinstance(label, str):
            return None
        try:
            return cls(label.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True, eq=False)
class LandmarkFrame:
    """One detected hand for one tick.

    Created fresh every tick by the provider and treated as read-only.
    Frames are not validated on construction because providers can hand us
    anything; call `validate()` or check `is_well_formed` before using the
    landmarks.
    """

    landmarks: np.ndarray  # shape (21, 3) when well formed
    handedness: Optional[Handedness]
    confidence: float = 1.0

    def __post_init__(self):
        conf = float(self.confidence)
        if not np.isfinite(conf):
            conf = 0.0
        object.__setattr__(self, "confidence", min(1.0, max(0.0, conf)))

    @classmethod
    def from_points(
        cls,
        points: Sequence[Sequence[float]] | np.ndarray,
        handedness: object,
        confidence: float = 1.0,
    ) -> LandmarkFrame:
        """Build a frame from nested lists or an array of (x, y, z) points.

        Ragged input produces an empty landmark array rather than an
        exception, so the frame is reported as malformed downstream.
        """
        try:
            landmarks = np.asarray(points, dtype=np.float32)
        except (TypeError, ValueError):
            logger.debug("Could not convert landmark points to an array")
            landmarks = np.zeros((0, Landmark.DIM), dtype=np.float32)
        return cls(
            landmarks=landmarks,
            handedness=Handedness.parse(handedness),
            confidence=confidence,
        )

    def problem(self) -> Optional[str]:
        """Describe why this frame is malformed, or None if it is usable."""
        if self.handedness is None:
            return "missing handedness"
        shape = getattr(self.landmarks, "shape", None)
        if shape != (Landmark.COUNT, Landmark.DIM):
            return f"expected {Landmark.COUNT} landmarks of {Landmark.DIM} values, got shape {shape}"
        if not np.all(np.isfinite(self.landmarks)):
            return "non-finite landmark coordinates"
        return None

    @property
    def is_well_formed(self) -> bool:
        return self.problem() is None

    def validate(self) -> LandmarkFrame:
        """Return self, or raise MalformedFrameError."""
        problem = self.problem()
        if problem is not None:
            raise MalformedFrameError(problem)
        return self

    def point(self, index: int) -> np.ndarray:
        """The (x, y, z) row for a landmark index."""
        return self.landmarks[index]

    def palm_center(self, mirror: bool = False) -> tuple[float, float]:
        """Midpoint of the wrist and the middle finger MCP in x/y.

        With `mirror`, x is flipped (1 - x) to match a mirrored display.
        """
        wrist = self.landmarks[Landmark.WRIST]
        middle_mcp = self.landmarks[Landmark.MIDDLE_MCP]
        x = float(wrist[0] + middle_mcp[0]) / 2.0
        y = float(wrist[1] + middle_mcp[1]) / 2.0
        if mirror:
            x = 1.0 - x
        return x, y

    def fingertips(self, mirror: bool = False) -> tuple[tuple[float, float], ...]:
        """x/y of the five fingertips, thumb to pinky, flipped like palm_center()."""
        tips = []
        for index in Landmark.TIPS:
            x, y = float(self.landmarks[index][0]), float(self.landmarks[index][1])
            tips.append((1.0 - x if mirror else x, y))
        return tuple(tips)
