"""Gesture archetypes and the geometric classifiers that score them.

Every classifier takes one `LandmarkFrame` and returns a `GestureCandidate`
for its own archetype. Confidence 0 means "not this gesture". Classifiers
keep no history and never raise on bad input: a malformed frame simply
scores 0.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Callable, ClassVar, Optional, Union

import numpy as np

from gesture_stream.config import PipelineConfig
from gesture_stream.landmarks import Handedness, Landmark, LandmarkFrame

logger = logging.getLogger("gesture_stream.gestures")


class GestureType(Enum):
    POINT = "point"
    OPEN_PALM = "open_palm"
    CLOSED_FIST = "closed_fist"
    PEACE_SIGN = "peace_sign"
    THUMBS_UP = "thumbs_up"
    PINCH = "pinch"
    ROCK_ON = "rock_on"

    @property
    def is_extended(self) -> bool:
        """Extended archetypes are optional and dropped first under load."""
        return self in EXTENDED_TYPES


EXTENDED_TYPES = frozenset({GestureType.ROCK_ON})


class FingerState(Enum):
    """Binary finger state based on landmark positions."""
    EXTENDED = "extended"
    CURLED = "curled"


# (tip, pip, mcp) per non-thumb finger
_FINGER_JOINTS = {
    "index": (Landmark.INDEX_TIP, Landmark.INDEX_PIP, Landmark.INDEX_MCP),
    "middle": (Landmark.MIDDLE_TIP, Landmark.MIDDLE_PIP, Landmark.MIDDLE_MCP),
    "ring": (Landmark.RING_TIP, Landmark.RING_PIP, Landmark.RING_MCP),
    "pinky": (Landmark.PINKY_TIP, Landmark.PINKY_PIP, Landmark.PINKY_MCP),
}
FINGERS = ("thumb", "index", "middle", "ring", "pinky")


# --------- Payload variants ---------

@dataclass(frozen=True)
class PointPayload:
    gesture: ClassVar[GestureType] = GestureType.POINT
    direction: tuple[float, float] = (0.0, 0.0)  # index MCP -> tip, display space

    def unit(self) -> tuple[float, float]:
        """Normalized direction, or (0, 0) for a zero-length vector."""
        dx, dy = self.direction
        norm = math.hypot(dx, dy)
        if norm < 1e-9 or not math.isfinite(norm):
            return 0.0, 0.0
        return dx / norm, dy / norm


@dataclass(frozen=True)
class OpenPalmPayload:
    gesture: ClassVar[GestureType] = GestureType.OPEN_PALM
    openness: float = 0.0  # fraction of non-thumb fingers extended


@dataclass(frozen=True)
class ClosedFistPayload:
    gesture: ClassVar[GestureType] = GestureType.CLOSED_FIST
    tightness: float = 0.0  # fraction of non-thumb fingers curled


@dataclass(frozen=True)
class PeaceSignPayload:
    gesture: ClassVar[GestureType] = GestureType.PEACE_SIGN
    spread: float = 0.0  # index tip <-> middle tip distance


@dataclass(frozen=True)
class ThumbsUpPayload:
    gesture: ClassVar[GestureType] = GestureType.THUMBS_UP


@dataclass(frozen=True)
class PinchPayload:
    gesture: ClassVar[GestureType] = GestureType.PINCH
    strength: float = 0.0
    distance: float = math.inf


@dataclass(frozen=True)
class RockOnPayload:
    gesture: ClassVar[GestureType] = GestureType.ROCK_ON


GesturePayload = Union[
    PointPayload,
    OpenPalmPayload,
    ClosedFistPayload,
    PeaceSignPayload,
    ThumbsUpPayload,
    PinchPayload,
    RockOnPayload,
]

_EMPTY_PAYLOADS: dict[GestureType, Callable[[], GesturePayload]] = {
    GestureType.POINT: PointPayload,
    GestureType.OPEN_PALM: OpenPalmPayload,
    GestureType.CLOSED_FIST: ClosedFistPayload,
    GestureType.PEACE_SIGN: PeaceSignPayload,
    GestureType.THUMBS_UP: ThumbsUpPayload,
    GestureType.PINCH: PinchPayload,
    GestureType.ROCK_ON: RockOnPayload,
}


# --------- Candidates and stable gestures ---------

@dataclass(frozen=True)
class GestureCandidate:
    """One classifier's verdict for one hand on one tick."""
    type: GestureType
    confidence: float
    hand: Optional[Handedness]
    payload: GesturePayload

    def __post_init__(self):
        if self.payload.gesture is not self.type:
            raise ValueError(
                f"{type(self.payload).__name__} does not belong to {self.type.value}"
            )
        conf = float(self.confidence)
        if not math.isfinite(conf):
            conf = 0.0
        object.__setattr__(self, "confidence", min(1.0, max(0.0, conf)))

    @classmethod
    def none(cls, gesture: GestureType, hand: Optional[Handedness]) -> GestureCandidate:
        """A zero-confidence candidate with an empty payload."""
        return cls(type=gesture, confidence=0.0, hand=hand, payload=_EMPTY_PAYLOADS[gesture]())


@dataclass(frozen=True)
class StableGesture:
    """A gesture that held through the stability window."""
    type: GestureType
    hand: Handedness
    confidence: float  # mean over the qualifying window entries
    payload: GesturePayload
    timestamp: float
    frames: int = 0  # qualifying ticks in the window

    def to_dict(self) -> dict:
        data = {
            "gesture": self.type.value,
            "hand": self.hand.value,
            "confidence": round(self.confidence, 4),
            "timestamp": self.timestamp,
        }
        for f in _payload_fields(self.payload):
            data[f] = getattr(self.payload, f)
        return data


def _payload_fields(payload: GesturePayload) -> list[str]:
    return [f.name for f in fields(payload)]


# --------- Geometry primitives ---------

def _distance_2d(a: np.ndarray, b: np.ndarray) -> float:
    return math.hypot(float(a[0] - b[0]), float(a[1] - b[1]))


def is_finger_extended(landmarks: np.ndarray, finger: str) -> bool:
    """Whether a finger is extended.

    Fingers count as extended when tip, PIP and MCP are strictly stacked
    upward (tip.y < pip.y < mcp.y). The thumb bends sideways, so it counts as
    extended when its tip is farther from the wrist than its MCP joint.
    """
    if finger == "thumb":
        wrist = landmarks[Landmark.WRIST]
        tip_dist = _distance_2d(landmarks[Landmark.THUMB_TIP], wrist)
        mcp_dist = _distance_2d(landmarks[Landmark.THUMB_MCP], wrist)
        return tip_dist > mcp_dist

    joints = _FINGER_JOINTS.get(finger)
    if joints is None:
        return False
    tip, pip, mcp = (landmarks[i] for i in joints)
    return bool(tip[1] < pip[1] < mcp[1])


def finger_states(landmarks: np.ndarray) -> dict[str, FingerState]:
    """Extension state of all five fingers."""
    return {
        finger: FingerState.EXTENDED if is_finger_extended(landmarks, finger) else FingerState.CURLED
        for finger in FINGERS
    }


def _usable(frame: LandmarkFrame, gesture: GestureType) -> bool:
    problem = frame.problem()
    if problem is not None:
        logger.debug("Skipping %s classification: %s", gesture.value, problem)
        return False
    return True


# --------- Classifiers ---------

def classify_point(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.POINT):
        return GestureCandidate.none(GestureType.POINT, frame.handedness)

    states = finger_states(frame.landmarks)
    pointing = (
        states["index"] is FingerState.EXTENDED
        and states["middle"] is FingerState.CURLED
        and states["ring"] is FingerState.CURLED
        and states["pinky"] is FingerState.CURLED
    )

    tip = frame.point(Landmark.INDEX_TIP)
    mcp = frame.point(Landmark.INDEX_MCP)
    dx = float(tip[0] - mcp[0])
    dy = float(tip[1] - mcp[1])
    if config.mirror_display:
        dx = -dx

    return GestureCandidate(
        type=GestureType.POINT,
        confidence=0.9 if pointing else 0.0,
        hand=frame.handedness,
        payload=PointPayload(direction=(dx, dy)),
    )


def classify_open_palm(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.OPEN_PALM):
        return GestureCandidate.none(GestureType.OPEN_PALM, frame.handedness)

    states = finger_states(frame.landmarks)
    extended = sum(1 for f in FINGERS[1:] if states[f] is FingerState.EXTENDED)
    thumb_out = states["thumb"] is FingerState.EXTENDED

    if not thumb_out or extended < 3:
        return GestureCandidate.none(GestureType.OPEN_PALM, frame.handedness)

    openness = extended / 4.0
    return GestureCandidate(
        type=GestureType.OPEN_PALM,
        confidence=openness,
        hand=frame.handedness,
        payload=OpenPalmPayload(openness=openness),
    )


def classify_closed_fist(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.CLOSED_FIST):
        return GestureCandidate.none(GestureType.CLOSED_FIST, frame.handedness)

    states = finger_states(frame.landmarks)
    curled = sum(1 for f in FINGERS[1:] if states[f] is FingerState.CURLED)
    thumb_in = states["thumb"] is FingerState.CURLED

    if not thumb_in or curled < 3:
        return GestureCandidate.none(GestureType.CLOSED_FIST, frame.handedness)

    tightness = curled / 4.0
    return GestureCandidate(
        type=GestureType.CLOSED_FIST,
        confidence=tightness,
        hand=frame.handedness,
        payload=ClosedFistPayload(tightness=tightness),
    )


def classify_peace_sign(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.PEACE_SIGN):
        return GestureCandidate.none(GestureType.PEACE_SIGN, frame.handedness)

    states = finger_states(frame.landmarks)
    peace = (
        states["index"] is FingerState.EXTENDED
        and states["middle"] is FingerState.EXTENDED
        and states["ring"] is FingerState.CURLED
        and states["pinky"] is FingerState.CURLED
    )
    spread = _distance_2d(frame.point(Landmark.INDEX_TIP), frame.point(Landmark.MIDDLE_TIP))

    return GestureCandidate(
        type=GestureType.PEACE_SIGN,
        confidence=0.9 if peace else 0.0,
        hand=frame.handedness,
        payload=PeaceSignPayload(spread=spread),
    )


def classify_thumbs_up(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.THUMBS_UP):
        return GestureCandidate.none(GestureType.THUMBS_UP, frame.handedness)

    states = finger_states(frame.landmarks)
    thumb_up = frame.point(Landmark.THUMB_TIP)[1] < frame.point(Landmark.WRIST)[1]
    others_in = all(states[f] is FingerState.CURLED for f in FINGERS[1:])
    matched = states["thumb"] is FingerState.EXTENDED and thumb_up and others_in

    return GestureCandidate(
        type=GestureType.THUMBS_UP,
        confidence=0.9 if matched else 0.0,
        hand=frame.handedness,
        payload=ThumbsUpPayload(),
    )


def pinch_strength(distance: float, threshold: float) -> float:
    """1.0 at zero distance, falling linearly to 0.0 at `threshold`."""
    if threshold <= 0 or not math.isfinite(distance):
        return 0.0
    return max(0.0, 1.0 - distance / threshold)


def classify_pinch(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.PINCH):
        return GestureCandidate.none(GestureType.PINCH, frame.handedness)

    distance = _distance_2d(frame.point(Landmark.THUMB_TIP), frame.point(Landmark.INDEX_TIP))
    strength = pinch_strength(distance, config.pinch_threshold)

    return GestureCandidate(
        type=GestureType.PINCH,
        confidence=strength,
        hand=frame.handedness,
        payload=PinchPayload(strength=strength, distance=distance),
    )


def classify_rock_on(frame: LandmarkFrame, config: PipelineConfig) -> GestureCandidate:
    if not _usable(frame, GestureType.ROCK_ON):
        return GestureCandidate.none(GestureType.ROCK_ON, frame.handedness)

    states = finger_states(frame.landmarks)
    matched = (
        states["thumb"] is FingerState.CURLED
        and states["index"] is FingerState.EXTENDED
        and states["middle"] is FingerState.CURLED
        and states["ring"] is FingerState.CURLED
        and states["pinky"] is FingerState.EXTENDED
    )

    return GestureCandidate(
        type=GestureType.ROCK_ON,
        confidence=0.9 if matched else 0.0,
        hand=frame.handedness,
        payload=RockOnPayload(),
    )


Classifier = Callable[[LandmarkFrame, PipelineConfig], GestureCandidate]

# Canonical order. Earlier entries win exact confidence ties.
CLASSIFIERS: dict[GestureType, Classifier] = {
    GestureType.POINT: classify_point,
    GestureType.PINCH: classify_pinch,
    GestureType.THUMBS_UP: classify_thumbs_up,
    GestureType.PEACE_SIGN: classify_peace_sign,
    GestureType.OPEN_PALM: classify_open_palm,
    GestureType.CLOSED_FIST: classify_closed_fist,
    GestureType.ROCK_ON: classify_rock_on,
}

CANONICAL_ORDER: tuple[GestureType, ...] = tuple(CLASSIFIERS)
