"""Synthetic hand poses for benchmarks, demos and tests.

Each canonical pose is built so that exactly one built-in classifier scores
it at or above the default detection threshold.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from gesture_stream.gestures import GestureType
from gesture_stream.landmarks import Handedness, Landmark, LandmarkFrame

# x offset of each non-thumb finger from the palm centre (right hand)
_FINGER_X = {"index": -0.045, "middle": -0.015, "ring": 0.015, "pinky": 0.045}
_FINGER_MCP = {
    "index": Landmark.INDEX_MCP,
    "middle": Landmark.MIDDLE_MCP,
    "ring": Landmark.RING_MCP,
    "pinky": Landmark.PINKY_MCP,
}

# y offsets of (PIP, DIP, TIP); the MCP always sits at +0.05
_EXTENDED_Y = (-0.02, -0.07, -0.11)
_CURLED_Y = (0.0, 0.04, 0.08)

# thumb tip position relative to the palm centre
_THUMB_TIPS = {
    "out": (-0.16, 0.02),
    "up": (-0.08, -0.10),
    "in": (-0.02, 0.16),
}

# (thumb, extended fingers) per pose
_POSES: dict[GestureType, tuple[str, frozenset]] = {
    GestureType.POINT: ("in", frozenset({"index"})),
    GestureType.OPEN_PALM: ("out", frozenset({"index", "middle", "ring", "pinky"})),
    GestureType.CLOSED_FIST: ("in", frozenset()),
    GestureType.PEACE_SIGN: ("in", frozenset({"index", "middle"})),
    GestureType.THUMBS_UP: ("up", frozenset()),
    GestureType.PINCH: ("pinch", frozenset({"middle", "ring", "pinky"})),
    GestureType.ROCK_ON: ("in", frozenset({"index", "pinky"})),
}


def pose_landmarks(
    gesture: GestureType,
    center: tuple[float, float] = (0.5, 0.5),
    mirror: bool = False,
) -> np.ndarray:
    """21x3 landmarks for a canonical pose around `center`.

    With `mirror`, the hand is flipped left/right (a left hand).
    """
    thumb, extended = _POSES[gesture]
    cx, cy = center
    sx = -1.0 if mirror else 1.0
    lm = np.zeros((Landmark.COUNT, Landmark.DIM), dtype=np.float32)

    def put(index: int, dx: float, dy: float):
        lm[index] = (cx + sx * dx, cy + dy, 0.0)

    put(Landmark.WRIST, 0.0, 0.20)
    put(Landmark.THUMB_CMC, -0.06, 0.16)
    put(Landmark.THUMB_MCP, -0.09, 0.11)

    for finger, fx in _FINGER_X.items():
        mcp = _FINGER_MCP[finger]
        put(mcp, fx, 0.05)
        ys = _EXTENDED_Y if finger in extended else _CURLED_Y
        for offset, dy in enumerate(ys, start=1):
            put(mcp + offset, fx, dy)

    if thumb == "pinch":
        # Index bent forward, thumb tip touching it
        put(Landmark.INDEX_PIP, -0.05, -0.03)
        put(Landmark.INDEX_DIP, -0.06, -0.02)
        put(Landmark.INDEX_TIP, -0.07, -0.01)
        tip = (-0.07, -0.01)
    else:
        tip = _THUMB_TIPS[thumb]

    put(Landmark.THUMB_TIP, *tip)
    put(Landmark.THUMB_IP, (-0.09 + tip[0]) / 2.0, (0.11 + tip[1]) / 2.0)
    return lm


def make_hand(
    gesture: GestureType,
    handedness: Handedness = Handedness.RIGHT,
    center: tuple[float, float] = (0.5, 0.5),
    confidence: float = 0.95,
    noise: float = 0.0,
    rng: Optional[np.random.Generator] = None,
) -> LandmarkFrame:
    """A LandmarkFrame holding a canonical pose.

    `noise` adds gaussian jitter with that standard deviation; keep it well
    under 0.01 if the pose should still classify.
    """
    landmarks = pose_landmarks(gesture, center, mirror=handedness is Handedness.LEFT)
    if noise > 0:
        rng = rng or np.random.default_rng()
        landmarks = landmarks + rng.normal(0.0, noise, landmarks.shape).astype(np.float32)
    return LandmarkFrame(landmarks=landmarks, handedness=handedness, confidence=confidence)


def malformed_hand(handedness: Optional[Handedness] = Handedness.RIGHT) -> LandmarkFrame:
    """A frame with a non-finite coordinate."""
    landmarks = pose_landmarks(GestureType.OPEN_PALM)
    landmarks[Landmark.INDEX_TIP, 0] = np.nan
    return LandmarkFrame(landmarks=landmarks, handedness=handedness, confidence=0.9)
