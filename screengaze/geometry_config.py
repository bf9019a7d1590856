#!/usr/bin/env python3

from __future__ import annotations

import dataclasses
import json
import math
import numbers
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import numpy as np

from screengaze.errors import ConfigurationError

DEFAULT_PARALLEL_EPSILON = 1e-6
DEFAULT_BEHIND_EPSILON = 1e-9
DEFAULT_GRACE_FRAMES = 3

# Tolerance for |u . v| when checking the screen axes are orthogonal.
AXIS_ORTHOGONALITY_TOLERANCE = 1e-6

Vec3 = tuple[float, float, float]


def _as_vec3(value: Any, name: str) -> Vec3:
    try:
        arr = np.asarray(value, dtype=float).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be 3 numbers, got {value!r}") from exc
    if arr.size != 3:
        raise ConfigurationError(f"{name} must be 3 numbers, got {arr.size}")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} must be finite, got {arr.tolist()}")
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def _as_positive(value: Any, name: str) -> float:
    try:
        val = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(val) or val <= 0.0:
        raise ConfigurationError(f"{name} must be > 0, got {val}")
    return val


@dataclass(frozen=True)
class GeometryConfig:
    """Physical layout of camera, screen and the head-relative gaze axis.

    All positions share one unit (the presets use centimetres). The world
    frame is anchored at the screen center; ``camera_offset`` is where the
    camera sits in that frame. ``eye_origin`` and ``eye_direction`` are
    expressed in the detected head frame.
    """

    camera_offset: Vec3
    screen_width: float
    screen_height: float
    eye_origin: Vec3
    eye_direction: Vec3
    parallel_epsilon: float = DEFAULT_PARALLEL_EPSILON
    grace_frames: int = DEFAULT_GRACE_FRAMES
    screen_u_axis: Vec3 = (1.0, 0.0, 0.0)
    screen_v_axis: Vec3 = (0.0, 1.0, 0.0)

    def __post_init__(self) -> None:
        # frozen: normalize field types through object.__setattr__
        set_ = object.__setattr__
        set_(self, "camera_offset", _as_vec3(self.camera_offset, "camera_offset"))
        set_(self, "eye_origin", _as_vec3(self.eye_origin, "eye_origin"))
        set_(self, "eye_direction", _as_vec3(self.eye_direction, "eye_direction"))
        set_(self, "screen_u_axis", _as_vec3(self.screen_u_axis, "screen_u_axis"))
        set_(self, "screen_v_axis", _as_vec3(self.screen_v_axis, "screen_v_axis"))
        set_(self, "screen_width", _as_positive(self.screen_width, "screen_width"))
        set_(self, "screen_height", _as_positive(self.screen_height, "screen_height"))
        set_(self, "parallel_epsilon", _as_positive(self.parallel_epsilon, "parallel_epsilon"))

        try:
            whole = isinstance(self.grace_frames, numbers.Real) and int(self.grace_frames) == self.grace_frames
        except (OverflowError, ValueError):
            whole = False
        if isinstance(self.grace_frames, bool) or not whole:
            raise ConfigurationError(f"grace_frames must be an integer, got {self.grace_frames!r}")
        if self.grace_frames < 0:
            raise ConfigurationError(f"grace_frames must be >= 0, got {self.grace_frames}")
        set_(self, "grace_frames", int(self.grace_frames))

        if np.linalg.norm(self.eye_direction) <= 1e-12:
            raise ConfigurationError("eye_direction must be non-zero")

        u = np.asarray(self.screen_u_axis, dtype=float)
        v = np.asarray(self.screen_v_axis, dtype=float)
        u_len = float(np.linalg.norm(u))
        v_len = float(np.linalg.norm(v))
        if u_len <= 1e-12 or v_len <= 1e-12:
            raise ConfigurationError("screen_u_axis and screen_v_axis must be non-zero")
        if abs(float(np.dot(u / u_len, v / v_len))) > AXIS_ORTHOGONALITY_TOLERANCE:
            raise ConfigurationError("screen_u_axis and screen_v_axis must be orthogonal")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeometryConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown geometry keys: {', '.join(unknown)}")
        required = {f.name for f in dataclasses.fields(cls) if f.default is dataclasses.MISSING}
        missing = sorted(required - set(data))
        if missing:
            raise ConfigurationError(f"missing geometry keys: {', '.join(missing)}")
        return cls(**dict(data))

    def replace(self, **changes: Any) -> "GeometryConfig":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data


@dataclass(frozen=True)
class Viewport:
    """Pixel size of the consumer's drawing surface."""

    width_px: float
    height_px: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "width_px", _as_positive(self.width_px, "width_px"))
        object.__setattr__(self, "height_px", _as_positive(self.height_px, "height_px"))

    @classmethod
    def from_pair(cls, size: Sequence[float]) -> "Viewport":
        if len(size) != 2:
            raise ConfigurationError(f"viewport needs width and height, got {list(size)}")
        return cls(size[0], size[1])


# 14" MacBook Pro: 30.2 x 19.6 cm panel, webcam in the notch 0.6 cm above the
# top edge. Camera frame is MediaPipe's (x right, y up, user at -z), so the
# screen's pixel rows run along -y and the screen faces the user (-z).
# Mid-eye sits roughly 3 cm above and 2.5 cm in front of the face-frame origin.
PRESETS: dict[str, dict[str, Any]] = {
    "mbp-14": {
        "camera_offset": [0.0, 19.6 / 2.0 + 0.6, 0.0],
        "screen_width": 30.2,
        "screen_height": 19.6,
        "eye_origin": [0.0, 3.0, 2.5],
        "eye_direction": [0.0, 0.0, 1.0],
        "screen_u_axis": [1.0, 0.0, 0.0],
        "screen_v_axis": [0.0, -1.0, 0.0],
    },
}


def preset_config(name: str, **overrides: Any) -> GeometryConfig:
    try:
        base = dict(PRESETS[name])
    except KeyError as exc:
        raise ConfigurationError(
            f"unknown preset {name!r}; available: {', '.join(sorted(PRESETS))}"
        ) from exc
    base.update(overrides)
    return GeometryConfig.from_mapping(base)


def geometry_from_args(args: Any) -> GeometryConfig:
    """Build the config from CLI arguments: --config or --preset first, then per-field overrides."""
    if getattr(args, "config", None):
        base = load_geometry_config(args.config).to_dict()
    elif getattr(args, "preset", None):
        try:
            base = dict(PRESETS[args.preset])
        except KeyError as exc:
            raise ConfigurationError(f"unknown preset {args.preset!r}") from exc
    else:
        base = {}

    overrides = {
        "camera_offset": getattr(args, "camera_offset", None),
        "eye_origin": getattr(args, "eye_origin", None),
        "eye_direction": getattr(args, "eye_direction", None),
        "screen_u_axis": getattr(args, "screen_u_axis", None),
        "screen_v_axis": getattr(args, "screen_v_axis", None),
        "parallel_epsilon": getattr(args, "parallel_epsilon", None),
        "grace_frames": getattr(args, "grace_frames", None),
    }
    screen_size = getattr(args, "screen_size", None)
    if screen_size is not None:
        overrides["screen_width"], overrides["screen_height"] = screen_size
    base.update({k: v for k, v in overrides.items() if v is not None})
    return GeometryConfig.from_mapping(base)


def load_geometry_config(path: str) -> GeometryConfig:
    """Read a geometry profile from a JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"geometry config {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"geometry config {path} must contain a JSON object")
    return GeometryConfig.from_mapping(data)
