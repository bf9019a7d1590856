#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np
from scipy.spatial.transform import Rotation as Rscipy


@dataclass(frozen=True, eq=False)
class HeadPose:
    """Head position and orientation in camera coordinates for one frame."""

    position: np.ndarray
    rotation: np.ndarray


def _vector3(value: Any) -> Optional[np.ndarray]:
    try:
        arr = np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        return None
    if arr.shape != (3,):
        return None
    return arr


def _matrix3(value: Any) -> Optional[np.ndarray]:
    try:
        arr = np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        return None
    if arr.shape != (3, 3):
        return None
    return arr


def _pose_from_homogeneous(value: Any) -> Optional[HeadPose]:
    try:
        mat = np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        return None
    if mat.size != 16:
        return None
    # MediaPipe ships its matrices flat or 4x4; both are column-vector transforms.
    mat = mat.reshape(4, 4)
    return HeadPose(position=mat[:3, 3].copy(), rotation=mat[:3, :3].copy())


def _pose_from_mapping(value: Mapping[str, Any]) -> Optional[HeadPose]:
    position = _vector3(value.get("position"))
    if position is None:
        return None

    if value.get("rotation") is not None:
        rotation = _matrix3(value["rotation"])
    elif value.get("quaternion") is not None:
        try:
            quat = np.asarray(value["quaternion"], dtype=float).reshape(-1)
        except (TypeError, ValueError):
            return None
        if quat.size != 4 or not np.all(np.isfinite(quat)) or np.linalg.norm(quat) <= 1e-12:
            return None
        rotation = Rscipy.from_quat(quat).as_matrix()
    else:
        return None

    if rotation is None:
        return None
    return HeadPose(position=position, rotation=rotation)


def extract_head_pose(source_output: Any) -> Optional[HeadPose]:
    """Normalize one frame of Landmark Source output into a HeadPose.

    Accepted shapes:
      - ``None``: no face detected
      - a ``HeadPose``
      - a mapping with ``position`` (3) and ``rotation`` (3x3) or
        ``quaternion`` (x, y, z, w)
      - a 4x4 homogeneous transform (or its 16 flat values)
      - a result object exposing ``facial_transformation_matrixes``
        (the first face is used)

    Returns None for anything else. Never raises; numeric validity of the
    pose (NaN, degenerate rotation) is checked by the ray builder.
    """
    if source_output is None:
        return None
    if isinstance(source_output, HeadPose):
        return source_output

    matrixes = getattr(source_output, "facial_transformation_matrixes", None)
    if matrixes is not None:
        try:
            if len(matrixes) == 0:
                return None
            first = matrixes[0]
        except TypeError:
            return None
        # MediaPipe builds may wrap the matrix in an object exposing .data
        return _pose_from_homogeneous(getattr(first, "data", first))

    if isinstance(source_output, Mapping):
        try:
            return _pose_from_mapping(source_output)
        except (TypeError, ValueError):
            return None

    if isinstance(source_output, (str, bytes)):
        return None
    return _pose_from_homogeneous(source_output)
