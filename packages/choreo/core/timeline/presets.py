"""Built-in animation presets and spec resolution.

``PresetLibrary.resolve`` turns any ``AnimationSpec`` (preset name, preset
reference or concrete descriptor) into an ``AnimationDescriptor``. Callers
resolve once, when they build their plan, and hold the descriptor.
"""

from __future__ import annotations

import logging
from typing import Any

from choreo.core.timeline.models import AnimationDescriptor, AnimationSpec, Keyframe, PresetRef

logger = logging.getLogger(__name__)

FALLBACK_PRESET = "fadeIn"


def _kf(offset: float, **values: Any) -> Keyframe:
    return Keyframe(offset=offset, values=values)


def _preset(name: str, duration_ms: float, easing: str, *keyframes: Keyframe) -> AnimationDescriptor:
    return AnimationDescriptor(
        name=name, keyframes=list(keyframes), duration_ms=duration_ms, easing=easing
    )


def builtin_presets() -> dict[str, AnimationDescriptor]:
    """Build the built-in preset table."""
    presets = [
        _preset("fadeIn", 300, "ease-out", _kf(0, opacity=0), _kf(1, opacity=1)),
        _preset("fadeOut", 300, "ease-in", _kf(0, opacity=1), _kf(1, opacity=0)),
        _preset(
            "slideInLeft",
            400,
            "ease-out",
            _kf(0, translateX=-100, opacity=0),
            _kf(1, translateX=0, opacity=1),
        ),
        _preset(
            "slideInRight",
            400,
            "ease-out",
            _kf(0, translateX=100, opacity=0),
            _kf(1, translateX=0, opacity=1),
        ),
        _preset(
            "slideInTop",
            400,
            "ease-out",
            _kf(0, translateY=-100, opacity=0),
            _kf(1, translateY=0, opacity=1),
        ),
        _preset(
            "slideInBottom",
            400,
            "ease-out",
            _kf(0, translateY=100, opacity=0),
            _kf(1, translateY=0, opacity=1),
        ),
        _preset(
            "zoomIn", 400, "ease-out", _kf(0, scale=0.5, opacity=0), _kf(1, scale=1, opacity=1)
        ),
        _preset(
            "zoomOut", 300, "ease-in", _kf(0, scale=1, opacity=1), _kf(1, scale=0.5, opacity=0)
        ),
        _preset(
            "pulse", 600, "ease-in-out", _kf(0, scale=1), _kf(0.5, scale=1.05), _kf(1, scale=1)
        ),
        _preset(
            "bounce",
            800,
            "linear",
            _kf(0, translateY=0),
            _kf(0.4, translateY=-20),
            _kf(0.6, translateY=0),
            _kf(0.8, translateY=-10),
            _kf(1, translateY=0),
        ),
        _preset(
            "shake",
            600,
            "linear",
            _kf(0, translateX=0),
            _kf(0.2, translateX=-10),
            _kf(0.4, translateX=10),
            _kf(0.6, translateX=-10),
            _kf(0.8, translateX=10),
            _kf(1, translateX=0),
        ),
        _preset(
            "flipIn",
            600,
            "ease-out",
            _kf(0, rotateY=-90, opacity=0),
            _kf(1, rotateY=0, opacity=1),
        ),
        _preset(
            "flipOut",
            600,
            "ease-in",
            _kf(0, rotateY=0, opacity=1),
            _kf(1, rotateY=90, opacity=0),
        ),
    ]
    return {p.name: p for p in presets}


def _lookup_key(name: str) -> str:
    return name.replace("-", "").replace("_", "").lower()


class PresetLibrary:
    """Named animation presets.

    Lookup ignores case, dashes and underscores (``"fade-in"`` finds
    ``fadeIn``). Unknown names resolve to ``fadeIn`` with a warning.

    Example:
        >>> library = PresetLibrary()
        >>> library.resolve("zoom-in").duration_ms
        400.0
        >>> library.resolve(PresetRef(name="fadeOut", duration_ms=120)).duration_ms
        120.0
    """

    def __init__(self, presets: dict[str, AnimationDescriptor] | None = None):
        self._presets: dict[str, AnimationDescriptor] = {}
        for descriptor in (presets if presets is not None else builtin_presets()).values():
            self.register(descriptor)

    def register(self, descriptor: AnimationDescriptor, name: str | None = None) -> None:
        """Add or replace a preset (last writer wins)."""
        self._presets[_lookup_key(name or descriptor.name)] = descriptor

    def get(self, name: str) -> AnimationDescriptor | None:
        return self._presets.get(_lookup_key(name))

    def names(self) -> list[str]:
        """Preset names as registered."""
        return sorted(p.name for p in self._presets.values())

    def resolve(self, spec: AnimationSpec) -> AnimationDescriptor:
        """Resolve an animation spec to a concrete descriptor.

        Args:
            spec: Preset name, PresetRef, or AnimationDescriptor

        Returns:
            AnimationDescriptor
        """
        if isinstance(spec, AnimationDescriptor):
            return spec
        if isinstance(spec, str):
            return self._named(spec)
        if isinstance(spec, PresetRef):
            return self._named(spec.name).with_overrides(spec.duration_ms, spec.easing)
        if isinstance(spec, dict):
            if spec.get("kind") == "preset":
                return self.resolve(PresetRef.model_validate(spec))
            return AnimationDescriptor.model_validate(spec)
        raise TypeError(f"Cannot resolve animation spec of type {type(spec).__name__}")

    def _named(self, name: str) -> AnimationDescriptor:
        descriptor = self.get(name)
        if descriptor is None:
            logger.warning(f"Unknown animation preset '{name}', using {FALLBACK_PRESET}")
            descriptor = self._presets.get(_lookup_key(FALLBACK_PRESET)) or builtin_presets()[
                FALLBACK_PRESET
            ]
        return descriptor
