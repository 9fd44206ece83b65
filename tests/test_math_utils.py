import math
import random

import pytest

from rom.core.base import Point
from rom.utils.math_utils import MathUtils


def test_right_angle():
    angle = MathUtils.calculate_angle(Point(0.5, 0.3), Point(0.5, 0.5), Point(0.7, 0.5))
    assert angle == pytest.approx(90.0)


def test_collinear_opposite_points_give_180():
    angle = MathUtils.calculate_angle(Point(0.1, 0.5), Point(0.5, 0.5), Point(0.9, 0.5))
    assert angle == pytest.approx(180.0)


def test_coincident_rays_give_0():
    angle = MathUtils.calculate_angle(Point(0.9, 0.9), Point(0.5, 0.5), Point(0.7, 0.7))
    assert angle == pytest.approx(0.0, abs=1e-4)


def test_accepts_plain_tuples():
    assert MathUtils.calculate_angle((0, 1), (0, 0), (1, 0)) == pytest.approx(90.0)


@pytest.mark.parametrize("missing", [0, 1, 2])
def test_absent_point_is_undefined(missing):
    points = [Point(0.2, 0.2), Point(0.5, 0.5), Point(0.8, 0.3)]
    points[missing] = None
    assert math.isnan(MathUtils.calculate_angle(*points))


def test_zero_length_ray_is_undefined():
    vertex = Point(0.5, 0.5)
    assert math.isnan(MathUtils.calculate_angle(Point(0.5, 0.5), vertex, Point(0.9, 0.1)))
    assert math.isnan(MathUtils.calculate_angle(Point(0.9, 0.1), vertex, Point(0.5, 0.5)))


def test_random_triples_in_range_and_symmetric():
    rng = random.Random(7)
    for _ in range(200):
        p1, v, p3 = (Point(rng.random(), rng.random()) for _ in range(3))
        angle = MathUtils.calculate_angle(p1, v, p3)
        if math.isnan(angle):
            continue
        assert 0.0 <= angle <= 180.0
        assert MathUtils.calculate_angle(p3, v, p1) == angle


def test_joint_angle_from_frame():
    frame = {
        "left_shoulder": Point(0.5, 0.3),
        "left_elbow": Point(0.5, 0.5),
        "left_wrist": Point(0.7, 0.5),
    }
    roles = ("left_shoulder", "left_elbow", "left_wrist")
    assert MathUtils.calculate_joint_angle(frame, roles) == pytest.approx(90.0)


def test_joint_angle_missing_role_is_undefined():
    frame = {"left_shoulder": Point(0.5, 0.3), "left_elbow": Point(0.5, 0.5)}
    roles = ("left_shoulder", "left_elbow", "left_wrist")
    assert math.isnan(MathUtils.calculate_joint_angle(frame, roles))


def test_joint_angle_low_visibility_is_undefined():
    frame = {
        "left_shoulder": Point(0.5, 0.3),
        "left_elbow": Point(0.5, 0.5, visibility=0.2),
        "left_wrist": Point(0.7, 0.5),
    }
    roles = ("left_shoulder", "left_elbow", "left_wrist")
    assert math.isnan(MathUtils.calculate_joint_angle(frame, roles, visibility_threshold=0.5))
    assert MathUtils.calculate_joint_angle(frame, roles, visibility_threshold=0.1) == pytest.approx(90.0)


def test_extension_convention():
    assert MathUtils.apply_convention(170.0, is_extension=True) == pytest.approx(10.0)
    assert MathUtils.apply_convention(170.0, is_extension=False) == 170.0
    assert math.isnan(MathUtils.apply_convention(float("nan"), is_extension=True))
