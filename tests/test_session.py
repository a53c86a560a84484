"""Tests for the async tracking session and landmark providers."""

import asyncio
import threading
from types import SimpleNamespace

import numpy as np
import pytest

from gesture_stream import providers
from gesture_stream.errors import ProviderUnavailableError
from gesture_stream.gestures import GestureType
from gesture_stream.governor import PerformanceTier
from gesture_stream.landmarks import Handedness
from gesture_stream.metrics import MetricsCollector
from gesture_stream.pipeline import GesturePipeline
from gesture_stream.providers import LandmarkProvider, MediaPipeProvider, ReplayProvider
from gesture_stream.recorder import FramePlayer, RecordedTick
from gesture_stream.session import SessionState, TrackingSession
from gesture_stream.synthetic import make_hand


def run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class ListProvider(LandmarkProvider):
    """Returns prepared ticks in order."""

    def __init__(self, ticks):
        self._ticks = list(ticks)
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True

    async def next_frames(self):
        return self._ticks.pop(0) if self._ticks else []

    async def stop(self):
        self.stopped = True

    @property
    def exhausted(self):
        return not self._ticks


class GatedProvider(LandmarkProvider):
    """Blocks in next_frames() until the test opens the gate."""

    def __init__(self):
        self.gate = None

    async def start(self):
        self.gate = asyncio.Event()

    async def next_frames(self):
        await self.gate.wait()
        return [make_hand(GestureType.OPEN_PALM)]


class BrokenProvider(LandmarkProvider):
    async def start(self):
        raise ProviderUnavailableError("camera busy")

    async def next_frames(self):
        return []


class TestTrackingSession:
    def test_tick_runs_pipeline(self):
        session = TrackingSession(ListProvider([[make_hand(GestureType.POINT)]]))

        async def scenario():
            await session.start()
            return await session.tick(now=1.0)

        result = run(scenario())
        assert result.timestamp == 1.0
        assert result.candidates[Handedness.RIGHT].type is GestureType.POINT
        assert session.last_result is result
        assert session.ticks == 1

    def test_tick_before_start(self):
        session = TrackingSession(ListProvider([[]]))
        assert run(session.tick(now=0.0)) is None

    def test_run_until_exhausted(self):
        ticks = [[make_hand(GestureType.CLOSED_FIST)] for _ in range(6)]
        provider = ListProvider(ticks)
        pipeline = GesturePipeline()
        seen = []
        pipeline.gestures.subscribe(seen.append)
        session = TrackingSession(provider, pipeline)

        async def scenario():
            await session.start()
            try:
                return await session.run()
            finally:
                await session.close()

        assert run(scenario()) == 6
        assert provider.stopped
        assert [g.type for g in seen] == [GestureType.CLOSED_FIST]

    def test_run_max_ticks(self):
        session = TrackingSession(ListProvider([[]] * 10))

        async def scenario():
            await session.start()
            return await session.run(max_ticks=3)

        assert run(scenario()) == 3

    def test_result_after_stop_is_discarded(self):
        provider = GatedProvider()
        session = TrackingSession(provider)

        async def scenario():
            await session.start()
            pending = asyncio.ensure_future(session.tick(now=0.0))
            await asyncio.sleep(0)
            session.stop()
            provider.gate.set()
            return await pending

        assert run(scenario()) is None
        assert session.last_result is None
        assert len(session.pipeline.trails) == 0
        assert not session.running

    def test_result_from_previous_generation_is_discarded(self):
        provider = GatedProvider()
        session = TrackingSession(provider)

        async def scenario():
            await session.start()
            gate = provider.gate
            pending = asyncio.ensure_future(session.tick(now=0.0))
            await asyncio.sleep(0)
            session.stop()
            await session.start()
            gate.set()
            return await pending

        assert run(scenario()) is None
        assert session.running
        assert session.ticks == 0

    def test_last_result_visible_while_pending(self):
        provider = GatedProvider()
        session = TrackingSession(provider)

        async def scenario():
            await session.start()
            provider.gate.set()
            first = await session.tick(now=0.0)

            provider.gate.clear()
            pending = asyncio.ensure_future(session.tick(now=0.1))
            await asyncio.sleep(0)
            during = session.last_result

            provider.gate.set()
            second = await pending
            return first, during, second

        first, during, second = run(scenario())
        assert during is first
        assert session.last_result is second
        assert len(second.trails[Handedness.RIGHT]) == 2

    def test_stop_clears_pipeline(self):
        session = TrackingSession(ListProvider([[make_hand(GestureType.OPEN_PALM)]] * 3))

        async def scenario():
            await session.start()
            await session.run()

        run(scenario())
        assert len(session.pipeline.trails) == 1
        session.stop()
        assert len(session.pipeline.trails) == 0
        assert len(session.pipeline.stability) == 0
        assert session.last_result is None

    def test_start_resets_governor(self):
        pipeline = GesturePipeline()
        for i in range(21):
            pipeline.process([], now=i / 20)
        assert pipeline.tier is PerformanceTier.MEDIUM

        session = TrackingSession(ListProvider([]), pipeline)
        run(session.start())
        assert pipeline.tier is PerformanceTier.HIGH

    def test_restart_publishes_return_to_high(self):
        metrics = MetricsCollector()
        pipeline = GesturePipeline(metrics=metrics)
        changes = []
        pipeline.tiers.subscribe(changes.append)
        session = TrackingSession(ListProvider([]), pipeline)

        async def scenario():
            await session.start()
            # three one-second windows at 20 fps
            for i in range(61):
                await session.tick(now=i / 20)
            assert pipeline.tier is PerformanceTier.LOW
            session.stop()
            await session.start()

        run(scenario())
        assert [(c.old, c.new) for c in changes] == [
            (PerformanceTier.HIGH, PerformanceTier.MEDIUM),
            (PerformanceTier.MEDIUM, PerformanceTier.LOW),
            (PerformanceTier.LOW, PerformanceTier.HIGH),
        ]
        assert pipeline.tier is PerformanceTier.HIGH
        assert "gesture_stream_performance_tier 2" in metrics.render()
        assert metrics.tier_changes == 3

    def test_failed_start_keeps_tier(self):
        pipeline = GesturePipeline()
        for i in range(41):
            pipeline.process([], now=i / 20)
        assert pipeline.tier is PerformanceTier.LOW

        session = TrackingSession(BrokenProvider(), pipeline)
        with pytest.raises(ProviderUnavailableError):
            run(session.start())
        assert pipeline.tier is PerformanceTier.LOW
        assert [c.new for c in pipeline.tiers.drain()] == [
            PerformanceTier.MEDIUM, PerformanceTier.LOW,
        ]

    def test_lifecycle_events(self):
        session = TrackingSession(ListProvider([[make_hand(GestureType.POINT)]] * 2))
        events = []
        session.lifecycle.subscribe(events.append)

        async def scenario():
            await session.start()
            await session.tick(now=0.0)
            await session.tick(now=0.1)
            await session.close()

        run(scenario())
        assert [e.state for e in events] == [SessionState.STARTED, SessionState.STOPPED]
        assert events[1].ticks == 2
        assert events[0].timestamp <= events[1].timestamp

    def test_stop_when_idle_publishes_nothing(self):
        session = TrackingSession(ListProvider([]))
        session.stop()
        assert len(session.lifecycle) == 0

    def test_provider_unavailable_propagates(self):
        session = TrackingSession(BrokenProvider())
        with pytest.raises(ProviderUnavailableError, match="camera busy"):
            run(session.start())
        assert not session.running


class TestReplayProvider:
    def make_player(self):
        return FramePlayer([
            RecordedTick(0.0, [make_hand(GestureType.POINT)]),
            RecordedTick(0.05, []),
            RecordedTick(0.1, [make_hand(GestureType.POINT, Handedness.LEFT)]),
        ])

    def test_replays_in_order(self):
        provider = ReplayProvider(self.make_player())

        async def scenario():
            await provider.start()
            ticks = []
            while not provider.exhausted:
                frames = await provider.next_frames()
                ticks.append((provider.timestamp, [f.handedness for f in frames]))
            return ticks

        assert run(scenario()) == [
            (0.0, [Handedness.RIGHT]),
            (0.05, []),
            (0.1, [Handedness.LEFT]),
        ]

    def test_session_uses_recorded_timestamps(self):
        session = TrackingSession(ReplayProvider(self.make_player()))

        async def scenario():
            await session.start()
            await session.run()

        run(scenario())
        assert session.last_result.timestamp == 0.1
        assert session.ticks == 3

    def test_realtime(self):
        provider = ReplayProvider(self.make_player(), realtime=True, speed=10.0)

        async def scenario():
            await provider.start()
            while not provider.exhausted:
                await provider.next_frames()
            return await provider.next_frames()

        assert run(scenario()) == []

    def test_realtime_waits_for_recorded_time(self):
        provider = ReplayProvider(self.make_player(), realtime=True, speed=2.0)

        async def scenario():
            loop = asyncio.get_running_loop()
            await provider.start()
            started = loop.time()
            while not provider.exhausted:
                await provider.next_frames()
            return loop.time() - started

        # last tick is recorded at 0.1 s, due at 0.05 s at double speed
        assert run(scenario()) >= 0.045


class TestMediaPipeProvider:
    def test_missing_mediapipe(self, monkeypatch):
        monkeypatch.setattr(providers, "mp", None)
        with pytest.raises(ProviderUnavailableError, match="mediapipe"):
            run(MediaPipeProvider().start())

    def test_missing_opencv(self, monkeypatch):
        monkeypatch.setattr(providers, "mp", object())
        monkeypatch.setattr(providers, "cv2", None)
        with pytest.raises(ProviderUnavailableError, match="opencv"):
            run(MediaPipeProvider().start())

    def test_next_frames_requires_start(self):
        with pytest.raises(RuntimeError):
            run(MediaPipeProvider().next_frames())

    def fake_camera(self, monkeypatch, results=None):
        """Install fake cv2/mediapipe modules; capture.read() waits for `gate`."""
        gate = threading.Event()
        reading = threading.Event()
        calls = []

        class Capture:
            released = False

            def isOpened(self):
                return True

            def read(self):
                calls.append("read")
                reading.set()
                gate.wait(5.0)
                return True, np.zeros((4, 4, 3), dtype=np.uint8)

            def release(self):
                calls.append("release")
                self.released = True

        class Hands:
            closed = False

            def __init__(self, **kwargs):
                self.kwargs = kwargs

            def process(self, image):
                calls.append("process")
                return results or SimpleNamespace(multi_hand_landmarks=None, multi_handedness=None)

            def close(self):
                calls.append("close")
                self.closed = True

        capture = Capture()
        monkeypatch.setattr(providers, "cv2", SimpleNamespace(
            VideoCapture=lambda index: capture,
            cvtColor=lambda image, code: image,
            COLOR_BGR2RGB=4,
        ))
        monkeypatch.setattr(providers, "mp", SimpleNamespace(
            solutions=SimpleNamespace(hands=SimpleNamespace(Hands=Hands)),
        ))
        return capture, gate, reading, calls

    def test_detects_hands(self, monkeypatch):
        landmarks = SimpleNamespace(landmark=[SimpleNamespace(x=0.5, y=0.5, z=0.0)] * 21)
        results = SimpleNamespace(
            multi_hand_landmarks=[landmarks],
            multi_handedness=[SimpleNamespace(classification=[SimpleNamespace(label="Left", score=0.8)])],
        )
        capture, gate, _, _ = self.fake_camera(monkeypatch, results)
        gate.set()
        provider = MediaPipeProvider(max_hands=1)

        async def scenario():
            await provider.start()
            try:
                return await provider.next_frames()
            finally:
                await provider.stop()

        frames = run(scenario())
        assert len(frames) == 1
        assert frames[0].handedness is Handedness.LEFT
        assert frames[0].confidence == pytest.approx(0.8)
        assert capture.released

    def test_close_waits_for_pending_detection(self, monkeypatch):
        capture, gate, reading, calls = self.fake_camera(monkeypatch)
        session = TrackingSession(MediaPipeProvider())

        async def scenario():
            await session.start()
            pending = asyncio.ensure_future(session.tick(now=0.0))
            assert await asyncio.to_thread(reading.wait, 5.0)

            closing = asyncio.ensure_future(session.close())
            await asyncio.sleep(0.05)
            # the worker still holds the camera, so nothing was released yet
            assert not capture.released

            gate.set()
            result = await pending
            await closing
            return result

        assert run(scenario()) is None
        assert capture.released
        assert calls == ["read", "process", "close", "release"]
        assert session.last_result is None

    def test_detection_after_stop_returns_nothing(self, monkeypatch):
        capture, gate, _, calls = self.fake_camera(monkeypatch)
        gate.set()
        provider = MediaPipeProvider()

        async def scenario():
            await provider.start()
            await provider.stop()
            return provider._detect_once()

        assert run(scenario()) == []
        assert "read" not in calls
