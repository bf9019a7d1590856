"""Webcam gaze estimation: head pose -> gaze ray -> screen point."""

from screengaze.errors import ConfigurationError, FrameFailure, GazeError, MalformedPoseError
from screengaze.frame_transform import HeadPose, extract_head_pose
from screengaze.geometry_config import GeometryConfig, Viewport, load_geometry_config, preset_config
from screengaze.pipeline import FrameResult, process_frame
from screengaze.ray_builder import WorldRay, build_world_ray
from screengaze.screen_mapper import GazePoint, map_to_screen
from screengaze.screen_plane import ScreenPlane, intersect_ray
from screengaze.tracking import TrackingContext, TrackingState

__all__ = [
    "ConfigurationError",
    "FrameFailure",
    "FrameResult",
    "GazeError",
    "GazePoint",
    "GeometryConfig",
    "HeadPose",
    "MalformedPoseError",
    "ScreenPlane",
    "TrackingContext",
    "TrackingState",
    "Viewport",
    "WorldRay",
    "build_world_ray",
    "extract_head_pose",
    "intersect_ray",
    "load_geometry_config",
    "map_to_screen",
    "preset_config",
    "process_frame",
]
