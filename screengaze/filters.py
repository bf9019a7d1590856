#!/usr/bin/env python3

from __future__ import annotations

import math
from typing import Optional

import numpy as np


def _smoothing_factor(cutoff_hz: float, dt: float) -> float:
    tau = 1.0 / (2.0 * math.pi * max(1e-5, cutoff_hz))
    return 1.0 / (1.0 + tau / max(1e-5, dt))


class PointSmoother:
    """One Euro filter over 2D pixel points.

    Jitter is damped when the point is still and lag stays low when it
    moves fast. Call ``reset`` whenever the stream has a gap so the next
    point is taken as-is.
    """

    def __init__(self, min_cutoff: float = 1.0, beta: float = 0.007, d_cutoff: float = 1.0) -> None:
        self.min_cutoff = max(1e-5, float(min_cutoff))
        self.beta = max(0.0, float(beta))
        self.d_cutoff = max(1e-5, float(d_cutoff))
        self._value: Optional[np.ndarray] = None
        self._speed: Optional[np.ndarray] = None
        self._last_time: Optional[float] = None

    @property
    def primed(self) -> bool:
        return self._value is not None

    def reset(self) -> None:
        self._value = None
        self._speed = None
        self._last_time = None

    def __call__(self, x: float, y: float, timestamp: float) -> tuple[float, float]:
        sample = np.array([x, y], dtype=float)
        if self._value is None or self._last_time is None:
            self._value = sample
            self._speed = np.zeros(2, dtype=float)
            self._last_time = float(timestamp)
            return float(sample[0]), float(sample[1])

        dt = max(1e-5, float(timestamp) - self._last_time)
        self._last_time = float(timestamp)

        raw_speed = (sample - self._value) / dt
        a_d = _smoothing_factor(self.d_cutoff, dt)
        self._speed = a_d * raw_speed + (1.0 - a_d) * self._speed

        cutoff = self.min_cutoff + self.beta * float(np.linalg.norm(self._speed))
        a = _smoothing_factor(cutoff, dt)
        self._value = a * sample + (1.0 - a) * self._value
        return float(self._value[0]), float(self._value[1])
