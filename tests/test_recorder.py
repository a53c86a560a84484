"""Tests for landmark recording and replay."""

import json

import numpy as np
import pytest

from gesture_stream.gestures import GestureType
from gesture_stream.landmarks import Handedness
from gesture_stream.recorder import FramePlayer, FrameRecorder, RecordedTick
from gesture_stream.synthetic import make_hand


class TestFrameRecorder:
    def test_save_and_load(self, tmp_path):
        recorder = FrameRecorder()
        recorder.start()
        recorder.add_tick([make_hand(GestureType.POINT), make_hand(GestureType.OPEN_PALM, Handedness.LEFT)], 0.0)
        recorder.add_tick([], 0.05)
        recorder.add_tick([make_hand(GestureType.POINT, confidence=0.7)], 0.1)
        assert recorder.stop() == 3

        path = tmp_path / "sub" / "session.json"
        recorder.save(path)

        player = FramePlayer.load(path)
        assert player.tick_count == 3
        assert player.duration == pytest.approx(0.1)

        first = player.get_tick(0)
        assert [f.handedness for f in first.frames] == [Handedness.RIGHT, Handedness.LEFT]
        np.testing.assert_allclose(
            first.frames[0].landmarks, make_hand(GestureType.POINT).landmarks, atol=1e-6
        )
        assert player.get_tick(1).frames == []
        assert player.get_tick(2).frames[0].confidence == pytest.approx(0.7)

    def test_file_layout(self, tmp_path):
        recorder = FrameRecorder()
        recorder.start()
        recorder.add_tick([make_hand(GestureType.PINCH)], 0.0)
        recorder.save(tmp_path / "s.json")

        data = json.loads((tmp_path / "s.json").read_text())
        assert data["version"] == 1
        assert data["tick_count"] == 1
        frame = data["ticks"][0]["frames"][0]
        assert frame["handedness"] == "right"
        assert len(frame["landmarks"]) == 21

    def test_ignores_ticks_when_stopped(self):
        recorder = FrameRecorder()
        recorder.add_tick([make_hand(GestureType.POINT)], 0.0)
        assert recorder.tick_count == 0
        assert not recorder.is_recording

    def test_measured_timestamps(self):
        recorder = FrameRecorder()
        recorder.start()
        recorder.add_tick([])
        recorder.add_tick([])
        assert recorder.tick_count == 2
        assert recorder.duration >= 0.0


class TestFramePlayer:
    def test_bad_version(self, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(json.dumps({"version": 99, "ticks": []}))
        with pytest.raises(ValueError, match="version"):
            FramePlayer.load(path)

    def test_malformed_frame_survives_load(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({
            "version": 1,
            "ticks": [{"timestamp": 0.0, "frames": [{"handedness": "left", "landmarks": [[0, 0, 0]]}]}],
        }))
        frame = FramePlayer.load(path).get_tick(0).frames[0]
        assert frame.handedness is Handedness.LEFT
        assert not frame.is_well_formed

    def test_empty(self):
        player = FramePlayer([])
        assert player.duration == 0.0
        assert list(player.play()) == []
        assert player.get_tick(0) is None
