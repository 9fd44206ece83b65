# rom/analysis/report.py
from typing import Dict, Iterable, Optional, Tuple, Any
from dataclasses import dataclass
from datetime import datetime, timezone

from rom.core.data_processor import SideStats

UNKNOWN_PATIENT = "Unknown"


@dataclass(frozen=True)
class AssessmentReport:
    """
    Immutable result of one completed ROM session.

    This is the contract handed to report formatters and exporters;
    a new assessment always produces a new report.
    """
    patient_id: str
    joint_id: str
    duration_seconds: float
    left: SideStats
    right: SideStats
    asymmetry: Optional[float]
    observations: Tuple[str, ...]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert the report to a JSON-ready dictionary."""
        return {
            "patient_id": self.patient_id,
            "joint_id": self.joint_id,
            "duration_seconds": self.duration_seconds,
            "left": self.left.to_dict(),
            "right": self.right.to_dict(),
            "asymmetry": self.asymmetry,
            "observations": list(self.observations),
            "created_at": self.created_at.isoformat()
        }


def create_report(patient_id: Optional[str],
                  joint_id: str,
                  duration_seconds: float,
                  left: SideStats,
                  right: SideStats,
                  asymmetry: Optional[float],
                  observations: Iterable[str],
                  created_at: Optional[datetime] = None) -> AssessmentReport:
    """
    Assemble an assessment report.

    Args:
        patient_id: Patient identifier; blank or None becomes "Unknown"
        joint_id: Catalog id of the assessed joint
        duration_seconds: Nominal session duration
        left, right: Per-side statistics
        asymmetry: Absolute difference of side maxima, or None
        observations: Ordered clinical findings
        created_at: Report timestamp (defaults to now, UTC)

    Returns:
        AssessmentReport
    """
    patient = (patient_id or "").strip() or UNKNOWN_PATIENT

    return AssessmentReport(
        patient_id=patient,
        joint_id=joint_id,
        duration_seconds=duration_seconds,
        left=left,
        right=right,
        asymmetry=asymmetry,
        observations=tuple(observations),
        created_at=created_at or datetime.now(timezone.utc)
    )
