#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from screengaze.geometry_config import Viewport
from screengaze.screen_plane import ScreenPlane


@dataclass(frozen=True)
class GazePoint:
    """Gaze target on screen. Values outside [0, 1] mean off-screen; never clamped."""

    normalized_x: float
    normalized_y: float
    pixel_x: float
    pixel_y: float


def map_to_screen(point: np.ndarray, plane: ScreenPlane, viewport: Viewport) -> GazePoint:
    rel = np.asarray(point, dtype=float) - plane.corner
    norm_x = float(np.dot(rel, plane.u)) / plane.width
    norm_y = float(np.dot(rel, plane.v)) / plane.height
    return GazePoint(
        normalized_x=norm_x,
        normalized_y=norm_y,
        pixel_x=norm_x * viewport.width_px,
        pixel_y=norm_y * viewport.height_px,
    )
