"""External collaborator protocols and default implementations."""

from choreo.core.capabilities.defaults import (
    HandleStyleApplier,
    InMemorySurface,
    RegistryTargetResolver,
    StaticMotionPreference,
    format_style_value,
)
from choreo.core.capabilities.protocols import (
    MotionPreference,
    StyleApplier,
    SurfaceHandle,
    TargetResolver,
)

__all__ = [
    "HandleStyleApplier",
    "InMemorySurface",
    "MotionPreference",
    "RegistryTargetResolver",
    "StaticMotionPreference",
    "StyleApplier",
    "SurfaceHandle",
    "TargetResolver",
    "format_style_value",
]
