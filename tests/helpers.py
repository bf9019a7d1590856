from __future__ import annotations

import numpy as np

from screengaze.frame_transform import HeadPose


def make_pose(x: float = 0.0, y: float = 0.0, z: float = -1.0, rotation=None) -> HeadPose:
    """Camera-relative head pose; identity rotation unless given."""
    return HeadPose(
        position=np.array([x, y, z], dtype=float),
        rotation=np.eye(3) if rotation is None else np.asarray(rotation, dtype=float),
    )
