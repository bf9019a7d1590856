#!/usr/bin/env python3

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Optional

import numpy as np

from screengaze.geometry_config import DEFAULT_BEHIND_EPSILON, GeometryConfig
from screengaze.ray_builder import WorldRay


def _unit(v: np.ndarray) -> np.ndarray:
    return v / float(np.linalg.norm(v))


@dataclass(frozen=True, eq=False)
class ScreenPlane:
    """Physical screen surface in the world frame.

    ``center`` is the world origin; ``corner`` is the top-left pixel corner
    used as the mapping origin. ``u`` points along increasing pixel x and
    ``v`` along increasing pixel y; both are unit length and ``normal`` is
    ``u x v``.
    """

    center: np.ndarray
    corner: np.ndarray
    u: np.ndarray
    v: np.ndarray
    normal: np.ndarray
    width: float
    height: float

    @classmethod
    def from_config(cls, config: GeometryConfig) -> "ScreenPlane":
        u = _unit(np.asarray(config.screen_u_axis, dtype=float))
        v = _unit(np.asarray(config.screen_v_axis, dtype=float))
        center = np.zeros(3, dtype=float)
        corner = center - u * (config.screen_width * 0.5) - v * (config.screen_height * 0.5)
        normal = _unit(np.cross(u, v))
        # planes are shared across frames and threads
        for arr in (center, corner, u, v, normal):
            arr.setflags(write=False)
        return cls(
            center=center,
            corner=corner,
            u=u,
            v=v,
            normal=normal,
            width=config.screen_width,
            height=config.screen_height,
        )


@functools.lru_cache(maxsize=16)
def screen_plane_for(config: GeometryConfig) -> ScreenPlane:
    """ScreenPlane derived from ``config``, built once per distinct config."""
    return ScreenPlane.from_config(config)


def intersect_ray(
    ray: WorldRay,
    plane: ScreenPlane,
    parallel_epsilon: float,
    behind_epsilon: float = DEFAULT_BEHIND_EPSILON,
) -> Optional[np.ndarray]:
    """Point where ``ray`` meets ``plane``, or None.

    None when the ray runs parallel to the plane (|d . n| < parallel_epsilon)
    or the hit lies behind the ray origin (t < -behind_epsilon).
    """
    denom = float(np.dot(ray.direction, plane.normal))
    if abs(denom) < parallel_epsilon:
        return None
    t = float(np.dot(plane.center - ray.origin, plane.normal)) / denom
    if not np.isfinite(t) or t < -behind_epsilon:
        return None
    return ray.point_at(max(t, 0.0))
