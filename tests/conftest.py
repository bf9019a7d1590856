from __future__ import annotations

import pytest

from screengaze.geometry_config import GeometryConfig, Viewport


@pytest.fixture
def unit_config() -> GeometryConfig:
    """1x1 screen at the origin facing +z, camera one unit behind it."""
    return GeometryConfig(
        camera_offset=(0.0, 0.0, -1.0),
        screen_width=1.0,
        screen_height=1.0,
        eye_origin=(0.0, 0.0, 0.0),
        eye_direction=(0.0, 0.0, 1.0),
        grace_frames=2,
    )


@pytest.fixture
def viewport() -> Viewport:
    return Viewport(1920, 1080)
