#!/usr/bin/env python3

from __future__ import annotations

from enum import Enum


class GazeError(Exception):
    """Base class for screengaze errors."""


class ConfigurationError(GazeError, ValueError):
    """Geometry or viewport configuration is unusable."""


class MalformedPoseError(GazeError):
    """Detected head pose is numerically invalid (NaN, degenerate rotation)."""


class FrameFailure(str, Enum):
    """Recoverable reasons a frame produced no fresh gaze point."""

    NO_DETECTION = "no_detection"
    MALFORMED_POSE = "malformed_pose"
    NO_INTERSECTION = "no_intersection"
