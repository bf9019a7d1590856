from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose

from screengaze.geometry_config import DEFAULT_PARALLEL_EPSILON
from screengaze.ray_builder import WorldRay
from screengaze.screen_plane import ScreenPlane, intersect_ray, screen_plane_for


def _ray(origin, direction) -> WorldRay:
    d = np.asarray(direction, dtype=float)
    return WorldRay(origin=np.asarray(origin, dtype=float), direction=d / np.linalg.norm(d))


def test_plane_from_config(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    assert_allclose(plane.center, [0.0, 0.0, 0.0])
    assert_allclose(plane.corner, [-0.5, -0.5, 0.0])
    assert_allclose(plane.normal, [0.0, 0.0, 1.0])
    assert float(np.dot(plane.u, plane.v)) == pytest.approx(0.0)


def test_plane_axes_are_normalized(unit_config):
    cfg = unit_config.replace(screen_u_axis=(2.0, 0.0, 0.0), screen_v_axis=(0.0, -3.0, 0.0))
    plane = ScreenPlane.from_config(cfg)
    assert_allclose(plane.u, [1.0, 0.0, 0.0])
    assert_allclose(plane.v, [0.0, -1.0, 0.0])
    assert_allclose(plane.normal, [0.0, 0.0, -1.0])


def test_plane_is_cached_and_read_only(unit_config):
    plane = screen_plane_for(unit_config)
    assert screen_plane_for(unit_config.replace()) is plane
    with pytest.raises(ValueError):
        plane.normal[0] = 1.0


def test_ray_through_known_point_hits_it(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    target = np.array([0.3, -0.2, 0.0])
    origin = np.array([-1.0, 2.0, -4.0])
    hit = intersect_ray(_ray(origin, target - origin), plane, DEFAULT_PARALLEL_EPSILON)
    assert_allclose(hit, target, atol=1e-9)


def test_hit_may_lie_off_screen(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    hit = intersect_ray(_ray([5.0, 0.0, -1.0], [0.0, 0.0, 1.0]), plane, DEFAULT_PARALLEL_EPSILON)
    assert_allclose(hit, [5.0, 0.0, 0.0])


def test_parallel_ray_has_no_intersection(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    with np.errstate(all="raise"):
        assert intersect_ray(_ray([0.0, 0.0, -1.0], [1.0, 0.0, 0.0]), plane, DEFAULT_PARALLEL_EPSILON) is None
        # lying in the plane is still parallel
        assert intersect_ray(_ray([0.0, 0.0, 0.0], [0.0, 1.0, 0.0]), plane, DEFAULT_PARALLEL_EPSILON) is None


def test_nearly_parallel_ray_respects_epsilon(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    ray = _ray([0.0, 0.0, -1.0], [1.0, 0.0, 1e-4])
    assert intersect_ray(ray, plane, 1e-3) is None
    assert intersect_ray(ray, plane, 1e-6) is not None


def test_ray_pointing_away_has_no_intersection(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    assert intersect_ray(_ray([0.0, 0.0, -2.0], [0.0, 0.0, -1.0]), plane, DEFAULT_PARALLEL_EPSILON) is None
    assert intersect_ray(_ray([0.0, 0.0, 2.0], [0.0, 0.0, 1.0]), plane, DEFAULT_PARALLEL_EPSILON) is None


def test_origin_on_plane_hits_itself(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    hit = intersect_ray(_ray([0.1, 0.1, 0.0], [0.0, 0.0, 1.0]), plane, DEFAULT_PARALLEL_EPSILON)
    assert_allclose(hit, [0.1, 0.1, 0.0])


def test_behind_epsilon_is_tunable(unit_config):
    plane = ScreenPlane.from_config(unit_config)
    ray = _ray([0.0, 0.0, 1e-3], [0.0, 0.0, 1.0])
    assert intersect_ray(ray, plane, DEFAULT_PARALLEL_EPSILON) is None
    assert_allclose(
        intersect_ray(ray, plane, DEFAULT_PARALLEL_EPSILON, behind_epsilon=1e-2),
        [0.0, 0.0, 1e-3],
    )
