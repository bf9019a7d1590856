#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from screengaze.errors import FrameFailure, MalformedPoseError
from screengaze.frame_transform import extract_head_pose
from screengaze.geometry_config import GeometryConfig, Viewport
from screengaze.ray_builder import WorldRay, build_world_ray
from screengaze.screen_mapper import GazePoint, map_to_screen
from screengaze.screen_plane import intersect_ray, screen_plane_for
from screengaze.tracking import TrackingContext, TrackingState, advance


@dataclass(frozen=True, eq=False)
class FrameResult:
    """Outcome of one frame.

    ``gaze_point`` is what the consumer should show this frame (None means
    nothing). ``held`` marks a re-emitted point from an earlier frame.
    ``failure`` says why this frame had no fresh point; ``ray`` and
    ``intersection`` are kept for diagnostics. Both are in the
    screen-anchored world frame (origin at the screen center), not the
    camera frame the head pose arrives in.
    """

    state: TrackingState
    gaze_point: Optional[GazePoint] = None
    held: bool = False
    failure: Optional[FrameFailure] = None
    ray: Optional[WorldRay] = None
    intersection: Optional[np.ndarray] = None

    @property
    def emitted(self) -> bool:
        return self.gaze_point is not None


def locate_gaze(
    source_output: Any,
    config: GeometryConfig,
    viewport: Viewport,
) -> tuple[Optional[GazePoint], Optional[FrameFailure], Optional[WorldRay], Optional[np.ndarray]]:
    """Stateless geometry for one frame: pose -> ray -> hit -> screen point."""
    pose = extract_head_pose(source_output)
    if pose is None:
        return None, FrameFailure.NO_DETECTION, None, None

    try:
        ray = build_world_ray(pose, config)
    except MalformedPoseError:
        return None, FrameFailure.MALFORMED_POSE, None, None

    plane = screen_plane_for(config)
    hit = intersect_ray(ray, plane, config.parallel_epsilon)
    if hit is None:
        return None, FrameFailure.NO_INTERSECTION, ray, None

    return map_to_screen(hit, plane, viewport), None, ray, hit


def process_frame(
    source_output: Any,
    config: GeometryConfig,
    context: TrackingContext,
    viewport: Viewport,
) -> FrameResult:
    """Run one frame of Landmark Source output through the whole pipeline.

    Per-frame failures never raise; they show up as ``FrameResult.failure``.
    """
    point, failure, ray, hit = locate_gaze(source_output, config, viewport)
    emitted, held = advance(context, point, config.grace_frames)
    return FrameResult(
        state=context.state,
        gaze_point=emitted,
        held=held,
        failure=failure,
        ray=ray,
        intersection=hit,
    )
