"""Pipeline configuration.

A `PipelineConfig` is validated once when it is built and never mutated.
Change settings on a running pipeline with `GesturePipeline.reconfigure()`,
which swaps the whole config between ticks.

YAML layout is flat, one key per field:

    detection_threshold: 0.8
    cooldown_seconds: 0.2
    trail_max_length: 30
"""

from __future__ import annotations

import dataclasses
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from gesture_stream.errors import ConfigError


@dataclass(frozen=True)
class PipelineConfig:
    """Thresholds and limits for every pipeline stage."""

    # Classification / selection
    detection_threshold: float = 0.8
    pinch_threshold: float = 0.05
    extended_gestures: bool = False
    mirror_display: bool = True

    # Stability window
    stability_frames: int = 5
    stability_ratio: float = 0.8

    # Cooldown
    cooldown_seconds: float = 0.2

    # Trails
    trail_max_length: int = 30
    trail_fade_seconds: float = 1.0
    trail_base_size: float = 8.0
    trail_velocity_multiplier: float = 0.5

    # Performance governor
    governor_interval: float = 1.0
    downgrade_medium_fps: float = 45.0
    downgrade_low_fps: float = 30.0
    upgrade_medium_fps: float = 55.0
    upgrade_high_fps: float = 58.0

    # Event channels
    channel_capacity: int = 256

    def __post_init__(self):
        self._check(0.0 < self.detection_threshold <= 1.0, "detection_threshold must be in (0, 1]")
        self._check(self.pinch_threshold > 0.0, "pinch_threshold must be positive")
        self._check(self.stability_frames >= 1, "stability_frames must be at least 1")
        self._check(0.0 < self.stability_ratio <= 1.0, "stability_ratio must be in (0, 1]")
        self._check(self.cooldown_seconds >= 0.0, "cooldown_seconds must not be negative")
        self._check(self.trail_max_length >= 1, "trail_max_length must be at least 1")
        self._check(self.trail_fade_seconds > 0.0, "trail_fade_seconds must be positive")
        self._check(self.trail_base_size >= 0.0, "trail_base_size must not be negative")
        self._check(
            self.trail_velocity_multiplier >= 0.0,
            "trail_velocity_multiplier must not be negative",
        )
        self._check(self.governor_interval > 0.0, "governor_interval must be positive")
        self._check(
            0.0 <= self.downgrade_low_fps < self.downgrade_medium_fps,
            "downgrade_low_fps must be below downgrade_medium_fps",
        )
        self._check(
            self.upgrade_medium_fps > self.downgrade_low_fps,
            "upgrade_medium_fps must be above downgrade_low_fps",
        )
        self._check(
            self.upgrade_high_fps > self.downgrade_medium_fps,
            "upgrade_high_fps must be above downgrade_medium_fps",
        )
        self._check(self.channel_capacity >= 1, "channel_capacity must be at least 1")

    @staticmethod
    def _check(ok: bool, message: str):
        if not ok:
            raise ConfigError(message)

    def replace(self, **changes: Any) -> PipelineConfig:
        """Return a validated copy with some fields changed."""
        unknown = set(changes) - self.field_names()
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **changes)

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> PipelineConfig:
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("Config must be a mapping of keys to values")
        unknown = set(data) - cls.field_names()
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_yaml(cls, path: str | Path) -> PipelineConfig:
        """Load a config from a YAML file. Missing keys keep their defaults."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path | None = None) -> str:
        """Serialize to YAML, writing to `path` when given. Returns the text."""
        text = yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        if path is not None:
            Path(path).write_text(text)
        return text
