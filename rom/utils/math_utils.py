# rom/utils/math_utils.py
import numpy as np
from typing import Tuple, Optional, Union
import math

from rom.core.base import Point, LandmarkFrame

PointLike = Union[Point, Tuple[float, ...]]


class MathUtils:
    """Geometry helpers for ROM assessment."""

    @staticmethod
    def _xy(point: PointLike) -> np.ndarray:
        if isinstance(point, Point):
            return np.array([point.x, point.y], dtype=float)
        return np.array([point[0], point[1]], dtype=float)

    @staticmethod
    def calculate_angle(p1: Optional[PointLike],
                        p2: Optional[PointLike],
                        p3: Optional[PointLike]) -> float:
        """
        Calculate the angle between three points with p2 as the vertex.

        Args:
            p1, p2, p3: Points (Point or (x, y) tuples); None for an absent landmark

        Returns:
            Angle in degrees within [0, 180], or NaN when undefined
            (absent point or zero-length ray)
        """
        if p1 is None or p2 is None or p3 is None:
            return float('nan')

        vertex = MathUtils._xy(p2)
        v1 = MathUtils._xy(p1) - vertex
        v2 = MathUtils._xy(p3) - vertex

        v1_norm = np.linalg.norm(v1)
        v2_norm = np.linalg.norm(v2)

        if v1_norm == 0 or v2_norm == 0 or not np.isfinite(v1_norm * v2_norm):
            return float('nan')

        # Clip to avoid arccos domain errors from floating point drift
        cos_angle = np.clip(np.dot(v1, v2) / (v1_norm * v2_norm), -1.0, 1.0)

        return float(np.degrees(np.arccos(cos_angle)))

    @staticmethod
    def resolve_landmark(frame: LandmarkFrame,
                         role: str,
                         visibility_threshold: float = 0.0) -> Optional[Point]:
        """
        Look up a landmark role in a frame.

        Returns None when the role is missing, mapped to None, or its
        visibility is below the threshold.
        """
        point = frame.get(role)
        if point is None or not point.is_visible(visibility_threshold):
            return None
        return point

    @staticmethod
    def calculate_joint_angle(frame: LandmarkFrame,
                              roles: Tuple[str, str, str],
                              visibility_threshold: float = 0.0) -> float:
        """
        Calculate a joint angle from a landmark frame.

        Args:
            frame: Mapping of landmark role to point
            roles: Tuple of (reference, vertex, reference) role names
            visibility_threshold: Minimum visibility for a landmark to count as present

        Returns:
            Angle in degrees, or NaN when undefined
        """
        p1, vertex, p3 = (MathUtils.resolve_landmark(frame, role, visibility_threshold)
                          for role in roles)
        return MathUtils.calculate_angle(p1, vertex, p3)

    @staticmethod
    def apply_convention(raw_angle: float, is_extension: bool) -> float:
        """Report 180 - raw for extension-convention joints; NaN passes through."""
        if is_extension and not math.isnan(raw_angle):
            return 180.0 - raw_angle
        return raw_angle
