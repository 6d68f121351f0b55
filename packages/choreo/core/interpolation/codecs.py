"""Value codecs for composite interpolation types.

Colors, transforms and paths are interpolated component-wise. A codec
decomposes a value into a numpy array of components and recomposes the
interpolated array back into the value's representation. The interpolator
only talks to the ``ValueCodec`` protocol; the defaults below cover the
common CSS/SVG spellings and can be replaced by a host-specific resolver.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from typing import Any, Protocol

import numpy as np

_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_RGB_RE = re.compile(r"^rgba?\(([^)]*)\)$")
_TRANSFORM_FN_RE = re.compile(r"([a-zA-Z]+)\(([^)]*)\)")
_NUMBER_RE = re.compile(r"-?\d*\.?\d+(?:e-?\d+)?")
_PATH_TOKEN_RE = re.compile(r"[MLml]|-?\d*\.?\d+(?:e-?\d+)?")

_NAMED_COLORS: dict[str, tuple[float, float, float, float]] = {
    "transparent": (0.0, 0.0, 0.0, 0.0),
    "black": (0.0, 0.0, 0.0, 1.0),
    "white": (255.0, 255.0, 255.0, 1.0),
    "red": (255.0, 0.0, 0.0, 1.0),
    "green": (0.0, 128.0, 0.0, 1.0),
    "blue": (0.0, 0.0, 255.0, 1.0),
}


class ValueCodec(Protocol):
    """Decomposes values into numeric components and back."""

    def decompose(self, value: Any) -> np.ndarray:
        """Split a value into a float component array.

        Raises:
            ValueError: If the value cannot be decomposed
        """
        ...

    def compose(self, components: np.ndarray, template: Any) -> Any:
        """Rebuild a value from components, mirroring ``template``'s spelling."""
        ...


def _format_number(value: float) -> str:
    rounded = round(float(value), 4)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded}"


# ============================================================================
# Color
# ============================================================================


class RGBAColorCodec:
    """Colors as ``[r, g, b, a]`` with channels 0-255 and alpha 0-1.

    Accepts ``#rgb``, ``#rgba``, ``#rrggbb``, ``#rrggbbaa``, ``rgb(...)``,
    ``rgba(...)``, a few keywords, and 3/4-number sequences.
    """

    def decompose(self, value: Any) -> np.ndarray:
        if isinstance(value, str):
            return np.array(self._parse(value.strip().lower()), dtype=float)
        if isinstance(value, Sequence) and len(value) in (3, 4):
            channels = [float(v) for v in value]
            if len(channels) == 3:
                channels.append(1.0)
            return np.array(channels, dtype=float)
        raise ValueError(f"Cannot decompose color: {value!r}")

    def compose(self, components: np.ndarray, template: Any) -> Any:
        r, g, b = (int(round(min(255.0, max(0.0, c)))) for c in components[:3])
        a = round(min(1.0, max(0.0, float(components[3]))), 3)

        if isinstance(template, str):
            if template.strip().startswith("#") and a >= 1.0:
                return f"#{r:02x}{g:02x}{b:02x}"
            return f"rgba({r}, {g}, {b}, {_format_number(a)})"
        if isinstance(template, tuple):
            return (r, g, b, a)
        return [r, g, b, a]

    def _parse(self, text: str) -> tuple[float, float, float, float]:
        if text in _NAMED_COLORS:
            return _NAMED_COLORS[text]

        hex_match = _HEX_RE.match(text)
        if hex_match:
            digits = hex_match.group(1)
            if len(digits) in (3, 4):
                digits = "".join(ch * 2 for ch in digits)
            r, g, b = (int(digits[i : i + 2], 16) for i in (0, 2, 4))
            a = int(digits[6:8], 16) / 255.0 if len(digits) == 8 else 1.0
            return float(r), float(g), float(b), a

        rgb_match = _RGB_RE.match(text)
        if rgb_match:
            parts = [p.strip() for p in rgb_match.group(1).replace("/", ",").split(",")]
            if len(parts) not in (3, 4):
                raise ValueError(f"Malformed color: {text!r}")
            r, g, b = (float(p.rstrip("%")) for p in parts[:3])
            a = float(parts[3]) if len(parts) == 4 else 1.0
            return r, g, b, a

        raise ValueError(f"Unrecognized color: {text!r}")


# ============================================================================
# Transform
# ============================================================================


def _matrix(a: float, b: float, c: float, d: float, e: float, f: float) -> np.ndarray:
    return np.array([[a, c, e], [b, d, f], [0.0, 0.0, 1.0]])


def _angle(raw: str) -> float:
    match = _NUMBER_RE.search(raw)
    value = float(match.group(0)) if match else 0.0
    if raw.endswith("rad"):
        return value
    if raw.endswith("turn"):
        return value * 2 * math.pi
    return math.radians(value)


class MatrixTransformCodec:
    """2D affine transforms as the six ``matrix(a, b, c, d, e, f)`` numbers.

    Accepts a six-number sequence, ``matrix(...)``, or a chain of
    ``translate/translateX/translateY/scale/scaleX/scaleY/rotate`` functions.
    Recomposes to ``matrix(...)`` strings, or to lists for sequence templates.
    """

    def decompose(self, value: Any) -> np.ndarray:
        if isinstance(value, Sequence) and not isinstance(value, str):
            if len(value) != 6:
                raise ValueError(f"Transform needs 6 numbers, got {len(value)}")
            return np.array([float(v) for v in value], dtype=float)
        if isinstance(value, str):
            return self._parse(value.strip())
        raise ValueError(f"Cannot decompose transform: {value!r}")

    def compose(self, components: np.ndarray, template: Any) -> Any:
        if isinstance(template, str):
            return f"matrix({', '.join(_format_number(c) for c in components)})"
        return [float(c) for c in components]

    def _parse(self, text: str) -> np.ndarray:
        if text in ("", "none"):
            return np.array([1.0, 0.0, 0.0, 1.0, 0.0, 0.0])

        result = np.identity(3)
        found = False
        for name, raw_args in _TRANSFORM_FN_RE.findall(text):
            found = True
            args = [a.strip() for a in raw_args.split(",") if a.strip()]
            nums = [float(_NUMBER_RE.search(a).group(0)) for a in args if _NUMBER_RE.search(a)]
            result = result @ self._function_matrix(name, args, nums)

        if not found:
            raise ValueError(f"Unrecognized transform: {text!r}")
        return np.array(
            [result[0, 0], result[1, 0], result[0, 1], result[1, 1], result[0, 2], result[1, 2]]
        )

    def _function_matrix(self, name: str, args: list[str], nums: list[float]) -> np.ndarray:
        if name == "matrix" and len(nums) == 6:
            return _matrix(*nums)
        if name == "translate" and nums:
            return _matrix(1, 0, 0, 1, nums[0], nums[1] if len(nums) > 1 else 0.0)
        if name == "translateX" and nums:
            return _matrix(1, 0, 0, 1, nums[0], 0)
        if name == "translateY" and nums:
            return _matrix(1, 0, 0, 1, 0, nums[0])
        if name == "scale" and nums:
            return _matrix(nums[0], 0, 0, nums[1] if len(nums) > 1 else nums[0], 0, 0)
        if name == "scaleX" and nums:
            return _matrix(nums[0], 0, 0, 1, 0, 0)
        if name == "scaleY" and nums:
            return _matrix(1, 0, 0, nums[0], 0, 0)
        if name == "rotate" and args:
            theta = _angle(args[0])
            cos, sin = math.cos(theta), math.sin(theta)
            return _matrix(cos, sin, -sin, cos, 0, 0)
        raise ValueError(f"Unsupported transform function: {name}({', '.join(args)})")


# ============================================================================
# Path
# ============================================================================


class PolylinePathCodec:
    """Paths as polylines resampled to a fixed number of points.

    Accepts a sequence of ``(x, y)`` points or an ``M x y L x y ...`` string.
    Both endpoints are resampled by arc length so paths with different point
    counts interpolate point-for-point.
    """

    def __init__(self, resolution: int = 100):
        if resolution < 2:
            raise ValueError("resolution must be >= 2")
        self.resolution = resolution

    def decompose(self, value: Any) -> np.ndarray:
        if isinstance(value, str):
            points = self._parse(value)
        elif isinstance(value, Sequence):
            points = np.array([[float(p[0]), float(p[1])] for p in value], dtype=float)
        else:
            raise ValueError(f"Cannot decompose path: {value!r}")

        if len(points) == 0:
            raise ValueError("Path has no points")
        return self.resample(points).ravel()

    def compose(self, components: np.ndarray, template: Any) -> Any:
        points = components.reshape(-1, 2)
        if isinstance(template, str):
            head, *tail = (f"{_format_number(x)},{_format_number(y)}" for x, y in points)
            return " ".join([f"M {head}", *(f"L {p}" for p in tail)])
        return [(float(x), float(y)) for x, y in points]

    def resample(self, points: np.ndarray) -> np.ndarray:
        """Resample a polyline to ``resolution`` points evenly spaced by length."""
        if len(points) == 1:
            return np.repeat(points, self.resolution, axis=0)

        segment_lengths = np.linalg.norm(np.diff(points, axis=0), axis=1)
        cumulative = np.concatenate([[0.0], np.cumsum(segment_lengths)])
        total = cumulative[-1]
        if total == 0:
            return np.repeat(points[:1], self.resolution, axis=0)

        targets = np.linspace(0.0, total, self.resolution)
        xs = np.interp(targets, cumulative, points[:, 0])
        ys = np.interp(targets, cumulative, points[:, 1])
        return np.column_stack([xs, ys])

    def _parse(self, text: str) -> np.ndarray:
        tokens = _PATH_TOKEN_RE.findall(text)
        cursor = np.zeros(2)
        relative = False
        pending: list[float] = []
        points: list[np.ndarray] = []

        for token in tokens:
            if token in ("M", "L", "m", "l"):
                relative = token.islower()
                continue
            pending.append(float(token))
            if len(pending) == 2:
                step = np.array(pending)
                cursor = cursor + step if relative else step
                points.append(cursor.copy())
                pending = []

        if pending:
            raise ValueError(f"Odd number of coordinates in path: {text!r}")
        return np.array(points, dtype=float).reshape(-1, 2)
