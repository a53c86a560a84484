"""Per-hand candidate selection over the geometric classifiers."""

from __future__ import annotations

from typing import Iterable, Optional

from gesture_stream.config import PipelineConfig
from gesture_stream.gestures import (
    CANONICAL_ORDER,
    CLASSIFIERS,
    Classifier,
    GestureCandidate,
    GestureType,
)
from gesture_stream.governor import PerformanceTier
from gesture_stream.landmarks import LandmarkFrame


class GestureClassifier:
    """Scores a frame with every active classifier and picks the winner.

    Classifiers run in canonical order (point, pinch, thumbs_up, peace_sign,
    open_palm, closed_fist, then the extended archetypes). The winner is the
    highest confidence at or above `detection_threshold`; on an exact tie the
    classifier that runs first wins.

    Extended archetypes only run when `extended_gestures` is enabled, and
    are skipped entirely at the LOW performance tier.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        classifiers: Optional[dict[GestureType, Classifier]] = None,
    ):
        self.config = config or PipelineConfig()
        self._classifiers = dict(classifiers) if classifiers is not None else dict(CLASSIFIERS)

    def active_types(self, tier: PerformanceTier = PerformanceTier.HIGH) -> list[GestureType]:
        """Gesture types evaluated at a given tier, in canonical order."""
        types = [t for t in CANONICAL_ORDER if t in self._classifiers]
        types += [t for t in self._classifiers if t not in CANONICAL_ORDER]
        if not self.config.extended_gestures or tier is PerformanceTier.LOW:
            types = [t for t in types if not t.is_extended]
        return types

    def scores(
        self, frame: LandmarkFrame, tier: PerformanceTier = PerformanceTier.HIGH
    ) -> list[GestureCandidate]:
        """Run every active classifier and return all candidates, in order."""
        return [self._classifiers[t](frame, self.config) for t in self.active_types(tier)]

    def select(
        self, frame: LandmarkFrame, tier: PerformanceTier = PerformanceTier.HIGH
    ) -> Optional[GestureCandidate]:
        """Return the best candidate above the threshold, or None."""
        return best_candidate(self.scores(frame, tier), self.config.detection_threshold)


def best_candidate(
    candidates: Iterable[GestureCandidate], threshold: float
) -> Optional[GestureCandidate]:
    """Highest confidence >= threshold; the earliest candidate wins ties."""
    best: Optional[GestureCandidate] = None
    for candidate in candidates:
        if candidate.confidence < threshold:
            continue
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    return best
