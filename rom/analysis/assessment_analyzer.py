# rom/analysis/assessment_analyzer.py
from typing import List, Optional, Tuple
import logging

from rom.config.joint_catalog import JointDefinition
from rom.core.base import Side
from rom.core.data_processor import SideStats

logger = logging.getLogger("rom.assessment_analyzer")

# Fixed clinical contract values; changing them changes the meaning of a report.
ASYMMETRY_THRESHOLD_DEGREES = 15.0


class AssessmentAnalyzer:
    """
    Turn per-side ROM statistics into clinical observations.

    Rules are evaluated in a fixed order and each appends at most one
    finding:

    1. left side limited (max below the joint's minimum acceptable ROM)
    2. right side limited
    3. left/right asymmetry above ASYMMETRY_THRESHOLD_DEGREES
    4. insufficient data (no valid samples on one or both sides)
    5. "within expected limits" when none of the above fired
    """

    @staticmethod
    def compute_asymmetry(left: SideStats, right: SideStats) -> Optional[float]:
        """Absolute difference of side maxima, None unless both are defined."""
        if left.max is None or right.max is None:
            return None
        return abs(left.max - right.max)

    def _limited_rom(self, side: Side, stats: SideStats, joint: JointDefinition) -> Optional[str]:
        if stats.max is None or stats.max >= joint.min_acceptable_degrees:
            return None
        return (f"{side.value.title()} {joint.label} limited: "
                f"max {stats.max:.1f}° is below the required minimum of "
                f"{joint.min_acceptable_degrees:.0f}°")

    def _asymmetry(self, left: SideStats, right: SideStats) -> Optional[str]:
        asymmetry = self.compute_asymmetry(left, right)
        if asymmetry is None or asymmetry <= ASYMMETRY_THRESHOLD_DEGREES:
            return None
        return (f"Asymmetry detected: left max {left.max:.1f}° vs right max "
                f"{right.max:.1f}° (difference {asymmetry:.1f}°)")

    def _insufficient_data(self, left: SideStats, right: SideStats,
                           joint: JointDefinition) -> List[str]:
        if not left.has_data and not right.has_data:
            return [f"Insufficient data: no valid {joint.label} measurements "
                    f"were recorded on either side"]

        return [
            f"Insufficient data: no valid {side.value} side {joint.label} "
            f"measurements were recorded"
            for side, stats in ((Side.LEFT, left), (Side.RIGHT, right))
            if not stats.has_data
        ]

    def generate_observations(self,
                              joint: JointDefinition,
                              left: SideStats,
                              right: SideStats) -> List[str]:
        """
        Generate the ordered observation list for a completed session.

        Args:
            joint: Definition of the assessed joint
            left: Left side statistics
            right: Right side statistics

        Returns:
            List of observation strings (never empty)
        """
        observations = []

        for side, stats in ((Side.LEFT, left), (Side.RIGHT, right)):
            finding = self._limited_rom(side, stats, joint)
            if finding:
                observations.append(finding)

        finding = self._asymmetry(left, right)
        if finding:
            observations.append(finding)

        observations.extend(self._insufficient_data(left, right, joint))

        if not observations:
            observations.append(f"{joint.label} ROM within expected limits")

        logger.debug(f"Generated {len(observations)} observation(s) for {joint.joint_id}")
        return observations

    def analyze(self,
                joint: JointDefinition,
                left: SideStats,
                right: SideStats) -> Tuple[Optional[float], List[str]]:
        """Return (asymmetry, observations) for a pair of side statistics."""
        return self.compute_asymmetry(left, right), self.generate_observations(joint, left, right)
