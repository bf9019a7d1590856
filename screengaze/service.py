#!/usr/bin/env python3

from __future__ import annotations

import argparse
import dataclasses
import sys
import time
from typing import Any, Optional

import cv2
import numpy as np

from screengaze.errors import ConfigurationError
from screengaze.event_bus import SocketEventBus
from screengaze.filters import PointSmoother
from screengaze.geometry_config import (
    DEFAULT_GRACE_FRAMES,
    DEFAULT_PARALLEL_EPSILON,
    PRESETS,
    GeometryConfig,
    Viewport,
    geometry_from_args,
)
from screengaze.landmark_source import MediaPipeLandmarkSource
from screengaze.pipeline import FrameResult, process_frame
from screengaze.screen_mapper import GazePoint
from screengaze.tracking import TrackingContext, TrackingState, disable


def now_ms() -> int:
    return int(time.perf_counter_ns() // 1_000_000)


class GazeTrackerService:
    """Webcam -> MediaPipe -> gaze pipeline -> event bus, one frame at a time."""

    def __init__(
        self,
        args: argparse.Namespace,
        config: GeometryConfig,
        viewport: Viewport,
        *,
        source: Any = None,
        capture: Any = None,
        event_bus: Optional[SocketEventBus] = None,
    ) -> None:
        """``source``, ``capture`` and ``event_bus`` default to MediaPipe,
        ``cv2.VideoCapture(args.camera)`` and a socket bus on ``args.host``/``args.port``.
        """
        self.args = args
        self.config = config
        self.viewport = viewport
        self.context = TrackingContext()
        self.event_bus = event_bus if event_bus is not None else SocketEventBus(host=args.host, port=args.port)
        self.smoother: Optional[PointSmoother] = None
        if args.smoothing:
            self.smoother = PointSmoother(
                min_cutoff=args.one_euro_cutoff,
                beta=args.one_euro_beta,
                d_cutoff=args.one_euro_d_cutoff,
            )
        self._enabled = True
        self._last_state = self.context.state

        self.source = source if source is not None else MediaPipeLandmarkSource(args.face_landmarker_task)
        self.cap = capture if capture is not None else cv2.VideoCapture(args.camera)
        if not self.cap.isOpened():
            self.source.close()
            raise RuntimeError(f"Unable to open camera {args.camera}")
        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            self.cap.set(cv2.CAP_PROP_FPS, 30)
        except cv2.error:
            pass

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False
        disable(self.context)
        if self.smoother is not None:
            self.smoother.reset()
        self._last_state = self.context.state

    def _smooth(self, result: FrameResult, timestamp_ms: int) -> FrameResult:
        if self.smoother is None:
            return result
        point = result.gaze_point
        if point is None:
            self.smoother.reset()
            return result
        px, py = self.smoother(point.pixel_x, point.pixel_y, timestamp_ms / 1000.0)
        smoothed = GazePoint(
            normalized_x=px / self.viewport.width_px,
            normalized_y=py / self.viewport.height_px,
            pixel_x=px,
            pixel_y=py,
        )
        return dataclasses.replace(result, gaze_point=smoothed)

    def handle_frame(self, frame_bgr: np.ndarray, timestamp_ms: int) -> Optional[FrameResult]:
        if not self._enabled:
            return None
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        detection = self.source.detect(frame_rgb)
        result = process_frame(detection, self.config, self.context, self.viewport)
        result = self._smooth(result, timestamp_ms)

        if self.args.debug and result.state is not self._last_state:
            reason = f" ({result.failure.value})" if result.failure is not None else ""
            print(f"[Tracker] {self._last_state.value} -> {result.state.value}{reason}")
        self._last_state = result.state

        self.event_bus.publish(result, timestamp_ms)
        return result

    def run(self) -> None:
        self.event_bus.start()
        print(
            "[Tracker] Gaze tracker running. Ctrl+C to quit | "
            f"screen={self.config.screen_width:g}x{self.config.screen_height:g} | "
            f"viewport={self.viewport.width_px:g}x{self.viewport.height_px:g} | "
            f"grace={self.config.grace_frames} frames | "
            f"smoothing={'on' if self.smoother is not None else 'off'}"
        )
        try:
            while True:
                ret, frame = self.cap.read()
                if not ret:
                    self.event_bus.broadcast(
                        {
                            "source": "gaze",
                            "timestamp": now_ms(),
                            "state": TrackingState.IDLE.value,
                            "intent": "noop",
                            "payload": {"reason": "camera_frame_missing"},
                        }
                    )
                    print("[Tracker] camera stopped delivering frames")
                    break
                self.handle_frame(frame, now_ms())
        except KeyboardInterrupt:
            print("[Tracker] interrupted")
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        self.disable()
        try:
            self.cap.release()
        except cv2.error:
            pass
        self.event_bus.stop()
        self.source.close()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Estimate on-screen gaze from a webcam")
    parser.add_argument("--camera", type=int, default=0, help="camera index")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--debug", action="store_true", help="Print tracking state transitions.")

    geometry = parser.add_argument_group("geometry")
    source = geometry.add_mutually_exclusive_group()
    source.add_argument("--config", type=str, default="", help="JSON geometry profile.")
    source.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default=None,
        help="Named physical layout. Without --config or --preset every geometry value must be given.",
    )
    geometry.add_argument(
        "--camera-offset",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        help="Camera position relative to the screen center.",
    )
    geometry.add_argument("--screen-size", type=float, nargs=2, metavar=("W", "H"), help="Physical screen size.")
    geometry.add_argument(
        "--eye-origin",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        help="Gaze ray origin in the head frame.",
    )
    geometry.add_argument(
        "--eye-direction",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        help="Gaze ray direction in the head frame.",
    )
    geometry.add_argument("--screen-u-axis", type=float, nargs=3, metavar=("X", "Y", "Z"))
    geometry.add_argument("--screen-v-axis", type=float, nargs=3, metavar=("X", "Y", "Z"))
    geometry.add_argument(
        "--parallel-epsilon",
        type=float,
        default=None,
        help=f"Rays with |dir . normal| below this miss the screen (default {DEFAULT_PARALLEL_EPSILON:g}).",
    )
    geometry.add_argument(
        "--grace-frames",
        type=int,
        default=None,
        help=f"Frames to hold the last point after tracking drops (default {DEFAULT_GRACE_FRAMES}).",
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "--viewport",
        type=float,
        nargs=2,
        metavar=("W", "H"),
        default=(1920.0, 1080.0),
        help="Consumer viewport in pixels.",
    )
    output.add_argument("--smoothing", action=argparse.BooleanOptionalAction, default=True)
    output.add_argument("--one-euro-cutoff", type=float, default=1.0)
    output.add_argument("--one-euro-beta", type=float, default=0.007)
    output.add_argument("--one-euro-d-cutoff", type=float, default=1.0)

    parser.add_argument(
        "--face-landmarker-task",
        type=str,
        default="",
        help="Path to mediapipe face_landmarker.task.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    try:
        config = geometry_from_args(args)
        viewport = Viewport.from_pair(args.viewport)
    except (ConfigurationError, OSError) as exc:
        print(f"[Tracker] invalid geometry configuration: {exc}", file=sys.stderr)
        sys.exit(2)
    GazeTrackerService(args, config, viewport).run()


if __name__ == "__main__":
    main()
