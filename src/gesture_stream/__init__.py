"""gesture-stream - Stable hand gesture events from per-frame hand landmarks."""

__version__ = "0.1.0"

from gesture_stream.errors import (
    ConfigError,
    GestureStreamError,
    MalformedFrameError,
    ProviderUnavailableError,
)
from gesture_stream.config import PipelineConfig
from gesture_stream.landmarks import Handedness, Landmark, LandmarkFrame
from gesture_stream.gestures import GestureCandidate, GestureType, StableGesture
from gesture_stream.classifier import GestureClassifier
from gesture_stream.governor import PerformanceGovernor, PerformanceTier, TierChange
from gesture_stream.stability import StabilityWindow
from gesture_stream.cooldown import CooldownTracker
from gesture_stream.trails import TrailSnapshot, TrailTracker, TrailUpdate
from gesture_stream.events import EventChannel
from gesture_stream.profiler import PipelineProfiler
from gesture_stream.metrics import MetricsCollector
from gesture_stream.pipeline import GesturePipeline, HandsEvent, HandsEventKind, TickResult
from gesture_stream.recorder import FramePlayer, FrameRecorder
from gesture_stream.providers import LandmarkProvider, MediaPipeProvider, ReplayProvider
from gesture_stream.session import SessionEvent, SessionState, TrackingSession
