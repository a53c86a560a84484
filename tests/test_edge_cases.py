"""Edge case tests for degenerate input."""

import numpy as np

from gesture_stream.classifier import GestureClassifier
from gesture_stream.config import PipelineConfig
from gesture_stream.gestures import GestureType, PointPayload, classify_point
from gesture_stream.landmarks import Handedness, Landmark, LandmarkFrame
from gesture_stream.pipeline import GesturePipeline
from gesture_stream.synthetic import make_hand


class TestLandmarkEdgeCases:
    """Malformed or extreme landmark data."""

    def test_inf_landmarks(self):
        lm = np.full((21, 3), np.inf, dtype=np.float32)
        frame = LandmarkFrame(lm, Handedness.RIGHT)
        assert GestureClassifier().select(frame) is None

    def test_all_zeros(self):
        # Every joint coincides: fist and pinch both score 1.0, pinch runs first
        frame = LandmarkFrame(np.zeros((21, 3), dtype=np.float32), Handedness.RIGHT)
        assert GestureClassifier().select(frame).type is GestureType.PINCH

    def test_wrong_dtype_accepted(self):
        lm = make_hand(GestureType.OPEN_PALM).landmarks.astype(np.float64)
        frame = LandmarkFrame(lm, Handedness.RIGHT)
        assert GestureClassifier().select(frame).type is GestureType.OPEN_PALM

    def test_zero_length_point_vector(self):
        lm = make_hand(GestureType.POINT).landmarks.copy()
        lm[Landmark.INDEX_TIP] = lm[Landmark.INDEX_MCP]
        candidate = classify_point(LandmarkFrame(lm, Handedness.RIGHT), PipelineConfig())
        assert candidate.payload.unit() == (0.0, 0.0)

    def test_nan_direction(self):
        assert PointPayload(direction=(float("nan"), 1.0)).unit() == (0.0, 0.0)

    def test_zero_confidence_frame_still_classified(self):
        # Source confidence only breaks handedness ties
        frame = make_hand(GestureType.CLOSED_FIST, confidence=0.0)
        assert GestureClassifier().select(frame).type is GestureType.CLOSED_FIST


class TestPipelineEdgeCases:
    def test_garbage_only_tick(self):
        pipeline = GesturePipeline()
        frames = [
            LandmarkFrame(np.zeros((5, 3), dtype=np.float32), Handedness.LEFT),
            LandmarkFrame(np.zeros((21, 3), dtype=np.float32), None),
        ]
        result = pipeline.process(frames, now=0.0)
        assert result.skipped == 2
        assert result.trails == {}

    def test_time_going_backwards(self):
        pipeline = GesturePipeline()
        pipeline.process([make_hand(GestureType.OPEN_PALM)], now=1.0)
        result = pipeline.process([make_hand(GestureType.OPEN_PALM)], now=0.5)
        velocities = [p.velocity for p in result.trails[Handedness.RIGHT].points]
        assert velocities == [0.0, 0.0]

    def test_single_frame_window(self):
        pipeline = GesturePipeline(PipelineConfig(stability_frames=1, cooldown_seconds=0.0))
        for i in range(3):
            result = pipeline.process([make_hand(GestureType.THUMBS_UP)], now=float(i))
            assert [g.type for g in result.emitted] == [GestureType.THUMBS_UP]

    def test_hand_switching_gestures(self):
        pipeline = GesturePipeline()
        for i in range(5):
            pipeline.process([make_hand(GestureType.POINT)], now=i * 0.0625)
        results = [
            pipeline.process([make_hand(GestureType.OPEN_PALM)], now=(5 + i) * 0.0625)
            for i in range(4)
        ]
        # 4 palms in a window of 5 is enough
        assert [g.type for g in results[-1].stable] == [GestureType.OPEN_PALM]
        assert [g.type for g in results[0].stable] == [GestureType.POINT]
        assert results[1].stable == () and results[2].stable == ()

    def test_many_hands_one_tick(self):
        pipeline = GesturePipeline()
        frames = [make_hand(GestureType.POINT, confidence=c) for c in (0.1, 0.5, 0.9, 0.3)]
        result = pipeline.process(frames, now=0.0)
        assert result.skipped == 3
        assert len(pipeline.trails) == 1
