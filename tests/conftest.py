"""
Shared fixtures for ROM engine tests.

Frames are synthetic: for each side the vertex landmark sits at a fixed
position, the first reference landmark straight above it and the second
reference landmark rotated by the requested interior angle.
"""

import math

import pytest

from rom.config.joint_catalog import get_joint_definition
from rom.config.config_manager import ConfigManager
from rom.core.base import Point, Side


VERTEX_X = {Side.LEFT: 0.35, Side.RIGHT: 0.65}
VERTEX_Y = 0.5
RAY_LENGTH = 0.2


def _side_points(roles, side, raw_angle):
    first, vertex, last = roles
    vx, vy = VERTEX_X[side], VERTEX_Y
    theta = math.radians(raw_angle)
    return {
        first: Point(vx, vy - RAY_LENGTH),
        vertex: Point(vx, vy),
        last: Point(vx + RAY_LENGTH * math.sin(theta), vy - RAY_LENGTH * math.cos(theta)),
    }


@pytest.fixture
def make_frame():
    """Build a landmark frame with the given raw interior angles; None leaves a side undetected."""

    def _make(joint_id, left=None, right=None, visibility=1.0):
        joint = get_joint_definition(joint_id)
        frame = {}
        for side, angle in ((Side.LEFT, left), (Side.RIGHT, right)):
            roles = joint.landmarks_for(side)
            if angle is None:
                frame.update({role: None for role in roles})
                continue
            points = _side_points(roles, side, angle)
            frame.update({
                role: Point(p.x, p.y, visibility) for role, p in points.items()
            })
        return frame

    return _make


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(config_dir=str(tmp_path / "rom-config"))
