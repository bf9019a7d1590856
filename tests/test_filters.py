from __future__ import annotations

import pytest

from screengaze.filters import PointSmoother


def test_first_sample_passes_through():
    smoother = PointSmoother()
    assert smoother(120.0, 80.0, 0.0) == (120.0, 80.0)
    assert smoother.primed


def test_constant_input_stays_put():
    smoother = PointSmoother()
    for i in range(10):
        x, y = smoother(300.0, 200.0, i / 30.0)
    assert (x, y) == pytest.approx((300.0, 200.0))


def test_jump_is_damped_towards_new_value():
    smoother = PointSmoother(min_cutoff=1.0, beta=0.0)
    smoother(0.0, 0.0, 0.0)
    x, y = smoother(100.0, -100.0, 1 / 30.0)
    assert 0.0 < x < 100.0
    assert -100.0 < y < 0.0


def test_higher_beta_follows_fast_motion_more_closely():
    slow = PointSmoother(min_cutoff=1.0, beta=0.0)
    fast = PointSmoother(min_cutoff=1.0, beta=1.0)
    for smoother in (slow, fast):
        smoother(0.0, 0.0, 0.0)
    x_slow, _ = slow(500.0, 0.0, 1 / 30.0)
    x_fast, _ = fast(500.0, 0.0, 1 / 30.0)
    assert x_fast > x_slow


def test_reset_forgets_history():
    smoother = PointSmoother()
    smoother(0.0, 0.0, 0.0)
    smoother(10.0, 10.0, 0.1)
    smoother.reset()
    assert not smoother.primed
    assert smoother(500.0, 400.0, 0.2) == (500.0, 400.0)
