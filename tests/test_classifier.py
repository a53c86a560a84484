"""Tests for per-hand candidate selection."""

import pytest

from gesture_stream.classifier import GestureClassifier, best_candidate
from gesture_stream.config import PipelineConfig
from gesture_stream.gestures import (
    ClosedFistPayload,
    GestureCandidate,
    GestureType,
    OpenPalmPayload,
    PointPayload,
)
from gesture_stream.governor import PerformanceTier
from gesture_stream.landmarks import Handedness
from gesture_stream.synthetic import make_hand, malformed_hand


def candidate(gesture, confidence, payload):
    return GestureCandidate(gesture, confidence, Handedness.RIGHT, payload)


class TestSelect:
    @pytest.mark.parametrize("gesture", [
        GestureType.POINT,
        GestureType.OPEN_PALM,
        GestureType.CLOSED_FIST,
        GestureType.PEACE_SIGN,
        GestureType.THUMBS_UP,
        GestureType.PINCH,
    ])
    def test_selects_pose(self, gesture):
        result = GestureClassifier().select(make_hand(gesture))
        assert result is not None
        assert result.type is gesture
        assert result.hand is Handedness.RIGHT

    def test_rock_on_needs_extended_flag(self):
        frame = make_hand(GestureType.ROCK_ON)
        assert GestureClassifier().select(frame) is None

        extended = GestureClassifier(PipelineConfig(extended_gestures=True))
        assert extended.select(frame).type is GestureType.ROCK_ON

    def test_low_tier_skips_extended(self):
        classifier = GestureClassifier(PipelineConfig(extended_gestures=True))
        assert GestureType.ROCK_ON in classifier.active_types(PerformanceTier.MEDIUM)
        assert GestureType.ROCK_ON not in classifier.active_types(PerformanceTier.LOW)
        assert classifier.select(make_hand(GestureType.ROCK_ON), PerformanceTier.LOW) is None

    def test_malformed_selects_nothing(self):
        assert GestureClassifier().select(malformed_hand()) is None

    def test_threshold_respected(self):
        # Point scores 0.9
        strict = GestureClassifier(PipelineConfig(detection_threshold=0.95))
        assert strict.select(make_hand(GestureType.POINT)) is None

    def test_scores_in_canonical_order(self):
        scores = GestureClassifier().scores(make_hand(GestureType.OPEN_PALM))
        assert [c.type for c in scores] == [
            GestureType.POINT,
            GestureType.PINCH,
            GestureType.THUMBS_UP,
            GestureType.PEACE_SIGN,
            GestureType.OPEN_PALM,
            GestureType.CLOSED_FIST,
        ]

    def test_custom_classifiers(self):
        def always_fist(frame, config):
            return GestureCandidate(GestureType.CLOSED_FIST, 1.0, frame.handedness, ClosedFistPayload(1.0))

        classifier = GestureClassifier(classifiers={GestureType.CLOSED_FIST: always_fist})
        assert classifier.select(make_hand(GestureType.OPEN_PALM)).type is GestureType.CLOSED_FIST


class TestBestCandidate:
    def test_highest_wins(self):
        best = best_candidate([
            candidate(GestureType.POINT, 0.85, PointPayload()),
            candidate(GestureType.OPEN_PALM, 0.95, OpenPalmPayload()),
        ], 0.8)
        assert best.type is GestureType.OPEN_PALM

    def test_tie_goes_to_earlier(self):
        best = best_candidate([
            candidate(GestureType.POINT, 0.9, PointPayload()),
            candidate(GestureType.OPEN_PALM, 0.9, OpenPalmPayload()),
        ], 0.8)
        assert best.type is GestureType.POINT

    def test_threshold_inclusive(self):
        best = best_candidate([candidate(GestureType.POINT, 0.8, PointPayload())], 0.8)
        assert best is not None

    def test_nothing_above(self):
        assert best_candidate([candidate(GestureType.POINT, 0.5, PointPayload())], 0.8) is None
        assert best_candidate([], 0.8) is None
