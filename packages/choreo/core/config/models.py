"""Configuration models for choreo."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TimingConfig(BaseModel):
    """Frame loop and playback defaults."""

    model_config = ConfigDict(extra="forbid")

    default_duration_ms: float = Field(
        default=300.0, ge=0.0, description="Duration used when a stage or command omits one"
    )

    frame_interval_ms: float = Field(
        default=1000.0 / 60.0, gt=0.0, description="Interval between frame loop ticks"
    )

    min_playback_rate: float = Field(
        default=0.01, gt=0.0, description="Lower bound applied to playback rate changes"
    )


class StaggerSettings(BaseModel):
    """Stagger distribution defaults."""

    model_config = ConfigDict(extra="forbid")

    delay_ms: float = Field(default=50.0, ge=0.0, description="Default per-item stagger delay")

    distance_band: float = Field(
        default=100.0, gt=0.0, description="Band width used by distance grouping"
    )


class SyncSettings(BaseModel):
    """Synchronization coordinator defaults."""

    model_config = ConfigDict(extra="forbid")

    cascade_offset_ms: float = Field(
        default=100.0, ge=0.0, description="Fixed offset between cascaded animations"
    )


class StateMachineSettings(BaseModel):
    """State machine defaults."""

    model_config = ConfigDict(extra="forbid")

    history_limit: int = Field(
        default=50, gt=0, description="Transition records kept before the oldest is evicted"
    )

    storage_key_prefix: str = Field(
        default="choreo:state:", description="Prefix for persisted snapshot keys"
    )


class InterpolationSettings(BaseModel):
    """Interpolation engine defaults."""

    model_config = ConfigDict(extra="forbid")

    snap_threshold: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Snap distance as a fraction of the interpolated range",
    )

    path_resolution: int = Field(
        default=100, ge=2, description="Points used when resampling paths"
    )

    default_easing: str = Field(
        default="ease-in-out", description="Easing applied when a stage declares none"
    )


class MotionConfig(BaseModel):
    """Static motion-preference policy used when no provider is injected."""

    model_config = ConfigDict(extra="forbid")

    reduced_motion: bool = Field(default=False, description="Prefer reduced motion")

    max_duration_ms: float | None = Field(
        default=None,
        ge=0.0,
        description="Stages longer than this are considered disallowed (None = no cap)",
    )

    blocked_categories: list[str] = Field(
        default_factory=list, description="Stage categories that are never allowed"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Text format string (ignored when structured)",
    )

    structured: bool = Field(default=False, description="Emit JSON log records")

    filename: str | None = Field(default=None, description="Log file (None = stdout)")


class AppConfig(BaseModel):
    """Top-level application configuration.

    Every section has defaults, so an empty file (or no file) is valid.

    Example:
        >>> config = AppConfig.model_validate({"timing": {"default_duration_ms": 250}})
        >>> config.sync.cascade_offset_ms
        100.0
    """

    model_config = ConfigDict(extra="forbid")

    timing: TimingConfig = Field(default_factory=TimingConfig)
    stagger: StaggerSettings = Field(default_factory=StaggerSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    state_machine: StateMachineSettings = Field(default_factory=StateMachineSettings)
    interpolation: InterpolationSettings = Field(default_factory=InterpolationSettings)
    motion: MotionConfig = Field(default_factory=MotionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
