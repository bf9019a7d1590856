#!/usr/bin/env python3

from __future__ import annotations

from enum import Enum
from typing import Optional

from screengaze.screen_mapper import GazePoint


class TrackingState(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    TRACKING = "tracking"
    LOST = "lost"


class TrackingContext:
    """Frame-to-frame memory of the tracking state machine.

    Read the properties freely; only ``advance`` and ``disable`` change them.
    One context belongs to one frame stream.
    """

    def __init__(self) -> None:
        self._state = TrackingState.IDLE
        self._held_point: Optional[GazePoint] = None
        self._missed_frames = 0
        self._frames_seen = 0

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def held_point(self) -> Optional[GazePoint]:
        return self._held_point

    @property
    def missed_frames(self) -> int:
        return self._missed_frames

    @property
    def frames_seen(self) -> int:
        return self._frames_seen

    def __repr__(self) -> str:
        return (
            f"TrackingContext(state={self._state.value}, missed={self._missed_frames}, "
            f"held={self._held_point is not None})"
        )


def advance(
    context: TrackingContext,
    point: Optional[GazePoint],
    grace_frames: int,
) -> tuple[Optional[GazePoint], bool]:
    """Feed one frame's fresh point (or None) through the state machine.

    Returns ``(point_to_emit, held)``. After tracking is lost the last valid
    point is re-emitted for up to ``grace_frames`` consecutive failed frames,
    then dropped.
    """
    context._frames_seen += 1
    if context._state is TrackingState.IDLE:
        context._state = TrackingState.ACQUIRING

    if point is not None:
        context._state = TrackingState.TRACKING
        context._held_point = point
        context._missed_frames = 0
        return point, False

    if context._state is TrackingState.ACQUIRING:
        return None, False

    context._state = TrackingState.LOST
    context._missed_frames += 1
    if context._held_point is not None and context._missed_frames <= grace_frames:
        return context._held_point, True
    context._held_point = None
    return None, False


def disable(context: TrackingContext) -> None:
    """Return to Idle and forget the held-over point."""
    context._state = TrackingState.IDLE
    context._held_point = None
    context._missed_frames = 0
