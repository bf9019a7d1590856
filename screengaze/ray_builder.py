#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from screengaze.errors import MalformedPoseError
from screengaze.frame_transform import HeadPose
from screengaze.geometry_config import GeometryConfig

# |det(R)| below this is treated as a non-invertible rotation.
MIN_ROTATION_DETERMINANT = 1e-9


@dataclass(frozen=True, eq=False)
class WorldRay:
    """Gaze ray in the screen-anchored world frame.

    The origin is the screen center, not the camera: ``origin`` already
    includes ``camera_offset``, so it can be compared with screen-plane
    points directly. ``direction`` is unit length.
    """

    origin: np.ndarray
    direction: np.ndarray

    def point_at(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction


def _normalize(v: np.ndarray) -> np.ndarray:
    n = float(np.linalg.norm(v))
    if not np.isfinite(n) or n <= 1e-12:
        raise MalformedPoseError("gaze direction collapsed to zero length")
    return v / n


def build_world_ray(pose: HeadPose, config: GeometryConfig) -> WorldRay:
    """Carry the head-relative gaze axis into world space.

    origin    = camera_offset + position + R @ eye_origin
    direction = normalize(R @ eye_direction)

    Raises MalformedPoseError when the pose holds non-finite values or the
    rotation is not invertible.
    """
    position = np.asarray(pose.position, dtype=float)
    rotation = np.asarray(pose.rotation, dtype=float)
    if position.shape != (3,) or rotation.shape != (3, 3):
        raise MalformedPoseError(
            f"pose has shape position={position.shape}, rotation={rotation.shape}"
        )
    if not (np.all(np.isfinite(position)) and np.all(np.isfinite(rotation))):
        raise MalformedPoseError("pose contains non-finite values")
    det = float(np.linalg.det(rotation))
    if not np.isfinite(det) or abs(det) < MIN_ROTATION_DETERMINANT:
        raise MalformedPoseError(f"rotation is degenerate (det={det:.3g})")

    eye_origin = np.asarray(config.eye_origin, dtype=float)
    eye_direction = np.asarray(config.eye_direction, dtype=float)
    camera_offset = np.asarray(config.camera_offset, dtype=float)

    origin = camera_offset + position + rotation @ eye_origin
    direction = _normalize(rotation @ eye_direction)
    return WorldRay(origin=origin, direction=direction)
