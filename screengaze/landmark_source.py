#!/usr/bin/env python3

from __future__ import annotations

import concurrent.futures
from concurrent.futures import ThreadPoolExecutor
import os
import sys
import typing as _t

import mediapipe as mp
import numpy as np


class MediaPipeLandmarkSource:
    """MediaPipe FaceLandmarker running in VIDEO mode with facial transforms enabled.

    ``detect`` returns the raw FaceLandmarkerResult; its
    ``facial_transformation_matrixes`` feed the frame transform extractor.
    """

    INIT_TIMEOUT_SEC = 5.5

    def __init__(self, model_path: str, *, frame_interval_ms: int = 16) -> None:
        self.model_path = model_path
        self.frame_interval_ms = max(1, int(frame_interval_ms))
        self._timestamp_ms = 0
        self._landmarker = None
        self._image_cls = None
        self._image_format = None
        self._init_landmarker()

    def _init_landmarker(self) -> None:
        if not hasattr(mp, "tasks"):
            raise RuntimeError(
                "This mediapipe build has no 'tasks' package; facial transformation "
                "matrices need mediapipe>=0.10 with the FaceLandmarker task."
            )
        if sys.version_info >= (3, 14) and sys.platform == "darwin":
            raise RuntimeError(
                "Mediapipe face tasks on macOS are currently unstable on Python 3.14. "
                "Please use Python 3.11 for this build."
            )

        try:
            from mediapipe.tasks.python.core.base_options import BaseOptions
            from mediapipe.tasks.python.vision import face_landmarker
            from mediapipe.tasks.python.vision.core.image import Image, ImageFormat
            from mediapipe.tasks.python.vision.core.vision_task_running_mode import (
                VisionTaskRunningMode,
            )
        except ImportError as exc:
            raise RuntimeError(
                "Mediapipe tasks backend is present but required symbols are missing: "
                f"{exc}"
            ) from exc

        if not self.model_path:
            raise RuntimeError(
                "No face landmarker model configured. "
                "Pass --face-landmarker-task /path/to/face_landmarker.task"
            )
        if not os.path.exists(self.model_path):
            raise FileNotFoundError(
                f"Face landmarker task model not found: {self.model_path}. "
                "Download a Mediapipe FaceLandmarker task model and pass its path."
            )

        self._image_cls = Image
        self._image_format = ImageFormat

        def _options(delegate: _t.Any = None) -> _t.Any:
            if delegate is None:
                base = BaseOptions(model_asset_path=self.model_path)
            else:
                base = BaseOptions(model_asset_path=self.model_path, delegate=delegate)
            return face_landmarker.FaceLandmarkerOptions(
                base_options=base,
                running_mode=VisionTaskRunningMode.VIDEO,
                num_faces=1,
                min_face_detection_confidence=0.5,
                min_face_presence_confidence=0.5,
                min_tracking_confidence=0.5,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=True,
            )

        def _create_with_timeout(options: _t.Any) -> _t.Any:
            with ThreadPoolExecutor(max_workers=1) as ex:
                future = ex.submit(face_landmarker.FaceLandmarker.create_from_options, options)
                try:
                    return future.result(timeout=self.INIT_TIMEOUT_SEC)
                except concurrent.futures.TimeoutError as exc:
                    raise RuntimeError(
                        "FaceLandmarker initialization timed out on this runtime. "
                        "Try a clean Python 3.11 + mediapipe install."
                    ) from exc

        try:
            self._landmarker = _create_with_timeout(_options(BaseOptions.Delegate.CPU))
        except Exception as cpu_error:
            print(f"[Tracker] CPU delegate unavailable ({cpu_error}); retrying with default delegate")
            try:
                self._landmarker = _create_with_timeout(_options())
            except Exception as default_error:
                raise RuntimeError(
                    f"Failed to initialize FaceLandmarker: {default_error}"
                ) from default_error

    def detect(self, frame_rgb: np.ndarray) -> _t.Any:
        if self._landmarker is None:
            raise RuntimeError("FaceLandmarker not initialized")
        # VIDEO mode needs strictly increasing timestamps
        self._timestamp_ms += self.frame_interval_ms
        image = self._image_cls(image_format=self._image_format.SRGB, data=frame_rgb)
        return self._landmarker.detect_for_video(image, int(self._timestamp_ms))

    def close(self) -> None:
        if self._landmarker is not None and hasattr(self._landmarker, "close"):
            self._landmarker.close()
        self._landmarker = None
