"""Configuration models and loaders."""

from choreo.core.config.loader import (
    clear_app_config_cache,
    configure_logging_from_config,
    detect_format,
    load_app_config,
    load_config,
)
from choreo.core.config.models import (
    AppConfig,
    InterpolationSettings,
    LoggingConfig,
    MotionConfig,
    StaggerSettings,
    StateMachineSettings,
    SyncSettings,
    TimingConfig,
)

__all__ = [
    "AppConfig",
    "InterpolationSettings",
    "LoggingConfig",
    "MotionConfig",
    "StaggerSettings",
    "StateMachineSettings",
    "SyncSettings",
    "TimingConfig",
    "clear_app_config_cache",
    "configure_logging_from_config",
    "detect_format",
    "load_app_config",
    "load_config",
]
