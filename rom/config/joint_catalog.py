# rom/config/joint_catalog.py
from types import MappingProxyType
from typing import Dict, Tuple, List, Any, Mapping
from dataclasses import dataclass

from rom.core.base import Side, UnknownJointError


@dataclass(frozen=True)
class JointDefinition:
    """Landmark triples and clinical thresholds for one measurable joint."""
    joint_id: str
    label: str
    left_landmarks: Tuple[str, str, str]  # (reference, vertex, reference)
    right_landmarks: Tuple[str, str, str]
    min_acceptable_degrees: float
    expected_degrees: float
    is_extension_convention: bool = False  # report 180 - interior angle

    def landmarks_for(self, side: Side) -> Tuple[str, str, str]:
        return self.left_landmarks if side is Side.LEFT else self.right_landmarks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "joint_id": self.joint_id,
            "label": self.label,
            "left_landmarks": list(self.left_landmarks),
            "right_landmarks": list(self.right_landmarks),
            "min_acceptable_degrees": self.min_acceptable_degrees,
            "expected_degrees": self.expected_degrees,
            "is_extension_convention": self.is_extension_convention
        }


def _sided(first: str, vertex: str, last: str, side: str) -> Tuple[str, str, str]:
    return (f"{side}_{first}", f"{side}_{vertex}", f"{side}_{last}")


def _joint(joint_id: str, label: str, roles: Tuple[str, str, str],
           min_acceptable: float, expected: float, extension: bool = False) -> JointDefinition:
    return JointDefinition(
        joint_id=joint_id,
        label=label,
        left_landmarks=_sided(*roles, side="left"),
        right_landmarks=_sided(*roles, side="right"),
        min_acceptable_degrees=min_acceptable,
        expected_degrees=expected,
        is_extension_convention=extension
    )


JOINT_CATALOG: Mapping[str, JointDefinition] = MappingProxyType({
    "shoulder": _joint("shoulder", "Shoulder Abduction", ("hip", "shoulder", "elbow"), 90.0, 180.0),
    "elbow": _joint("elbow", "Elbow Flexion", ("shoulder", "elbow", "wrist"), 100.0, 145.0),
    "knee": _joint("knee", "Knee Extension", ("hip", "knee", "ankle"), 10.0, 0.0, extension=True),
    "hip": _joint("hip", "Hip Flexion", ("shoulder", "hip", "knee"), 80.0, 120.0),
})


def get_joint_definition(joint_id: str) -> JointDefinition:
    """
    Resolve a joint id to its definition.

    Raises:
        UnknownJointError: if the id is not in the catalog
    """
    key = (joint_id or "").strip().lower()
    try:
        return JOINT_CATALOG[key]
    except KeyError:
        raise UnknownJointError(joint_id) from None


def available_joints() -> List[str]:
    """Joint ids in catalog order."""
    return list(JOINT_CATALOG.keys())
