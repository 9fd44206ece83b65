# rom/core/session.py
from typing import Dict, List, Tuple, Optional, Any, Callable, Union
import logging
import math
import threading

from rom.core.base import Side, SessionState, SessionStateError, AngleSample, LandmarkFrame
from rom.core.data_processor import compute_stats
from rom.config.joint_catalog import JointDefinition, get_joint_definition
from rom.analysis.assessment_analyzer import AssessmentAnalyzer
from rom.analysis.report import AssessmentReport, create_report
from rom.utils.math_utils import MathUtils

logger = logging.getLogger("rom.session")

DEFAULT_DURATION_SECONDS = 15
DEFAULT_VISIBILITY_THRESHOLD = 0.5


class SamplingSession:
    """
    Timed left/right angle sampling for a single joint.

    States: IDLE -> RECORDING -> FINALIZING -> COMPLETE. Frames are pushed
    with feed_frame() and time advances through advance_one_second(); the
    session completes when the countdown reaches zero regardless of how
    many valid samples were collected. All mutations are serialized by an
    internal lock so frames and timer ticks may come from different threads.
    """

    def __init__(self,
                 joint: Union[JointDefinition, str],
                 patient_id: str = "",
                 duration_seconds: int = DEFAULT_DURATION_SECONDS,
                 visibility_threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
                 analyzer: Optional[AssessmentAnalyzer] = None,
                 on_complete: Optional[Callable[[AssessmentReport], None]] = None):
        """
        Initialize a sampling session.

        Args:
            joint: Joint definition or catalog id
            patient_id: Patient identifier stamped on the report
            duration_seconds: Length of the observation window
            visibility_threshold: Minimum landmark visibility to count as present
            analyzer: Observation generator (default AssessmentAnalyzer)
            on_complete: Called with the report after the session completes
        """
        if isinstance(duration_seconds, bool) or duration_seconds != int(duration_seconds) or duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be a positive whole number, got {duration_seconds}")

        self.joint = joint if isinstance(joint, JointDefinition) else get_joint_definition(joint)
        self.patient_id = patient_id
        self.duration_seconds = int(duration_seconds)
        self.visibility_threshold = visibility_threshold
        self.analyzer = analyzer or AssessmentAnalyzer()
        self.on_complete = on_complete

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._remaining = self.duration_seconds
        self._samples: Dict[Side, List[AngleSample]] = {Side.LEFT: [], Side.RIGHT: []}
        self._report: Optional[AssessmentReport] = None

    # Read accessors

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def elapsed_seconds(self) -> int:
        return self.duration_seconds - self._remaining

    @property
    def report(self) -> Optional[AssessmentReport]:
        return self._report

    @property
    def left_samples(self) -> Tuple[AngleSample, ...]:
        with self._lock:
            return tuple(self._samples[Side.LEFT])

    @property
    def right_samples(self) -> Tuple[AngleSample, ...]:
        with self._lock:
            return tuple(self._samples[Side.RIGHT])

    def status(self) -> Dict[str, Any]:
        """Snapshot of the session for a UI layer."""
        with self._lock:
            return {
                "joint_id": self.joint.joint_id,
                "label": self.joint.label,
                "state": self._state.value,
                "duration_seconds": self.duration_seconds,
                "remaining_seconds": self._remaining,
                "elapsed_seconds": self.elapsed_seconds,
                "left_count": len(self._samples[Side.LEFT]),
                "right_count": len(self._samples[Side.RIGHT]),
                "has_report": self._report is not None
            }

    # Transitions

    def _clear(self):
        self._samples[Side.LEFT].clear()
        self._samples[Side.RIGHT].clear()
        self._report = None
        self._remaining = self.duration_seconds

    def start(self) -> None:
        """Begin recording; clears any previous samples and report."""
        with self._lock:
            if self._state in (SessionState.RECORDING, SessionState.FINALIZING):
                raise SessionStateError("start", self._state)

            self._clear()
            self._state = SessionState.RECORDING

        logger.info(f"Started {self.joint.joint_id} session ({self.duration_seconds}s)")

    def stop(self) -> None:
        """Abort a recording session; no report is produced."""
        with self._lock:
            if self._state is not SessionState.RECORDING:
                raise SessionStateError("stop", self._state)

            self._clear()
            self._state = SessionState.IDLE

        logger.info(f"Stopped {self.joint.joint_id} session before completion")

    def reset(self) -> None:
        """Return an idle or completed session to a clean idle state."""
        with self._lock:
            if self._state not in (SessionState.IDLE, SessionState.COMPLETE):
                raise SessionStateError("reset", self._state)

            self._clear()
            self._state = SessionState.IDLE

        logger.info(f"Reset {self.joint.joint_id} session")

    # Inputs

    def measure(self, frame: LandmarkFrame) -> Dict[Side, float]:
        """Reported left/right angles for a frame (NaN where undefined)."""
        angles = {}
        for side in (Side.LEFT, Side.RIGHT):
            raw = MathUtils.calculate_joint_angle(
                frame, self.joint.landmarks_for(side), self.visibility_threshold
            )
            angles[side] = MathUtils.apply_convention(raw, self.joint.is_extension_convention)
        return angles

    def feed_frame(self, frame: LandmarkFrame) -> Dict[Side, Optional[float]]:
        """
        Consume one landmark frame.

        Args:
            frame: Mapping of landmark role to point (None when not detected)

        Returns:
            Reported angle per side for this frame (None where undefined);
            an empty dict when the session is not recording
        """
        with self._lock:
            if self._state is not SessionState.RECORDING:
                return {}

            readings = {}
            for side, angle in self.measure(frame).items():
                if math.isfinite(angle):
                    self._samples[side].append(AngleSample(side=side, value=angle))
                    readings[side] = angle
                else:
                    logger.debug(f"No {side.value} {self.joint.joint_id} angle this frame")
                    readings[side] = None

            return readings

    def advance_one_second(self) -> bool:
        """
        Advance the countdown by one second.

        Returns:
            True if this tick completed the session
        """
        with self._lock:
            if self._state is not SessionState.RECORDING:
                return False

            self._remaining = max(self._remaining - 1, 0)
            if self._remaining > 0:
                return False

            report = self._finalize()

        if self.on_complete:
            self.on_complete(report)
        return True

    def _finalize(self) -> AssessmentReport:
        self._state = SessionState.FINALIZING

        left = compute_stats(self._samples[Side.LEFT])
        right = compute_stats(self._samples[Side.RIGHT])
        asymmetry, observations = self.analyzer.analyze(self.joint, left, right)

        self._report = create_report(
            patient_id=self.patient_id,
            joint_id=self.joint.joint_id,
            duration_seconds=self.duration_seconds,
            left=left,
            right=right,
            asymmetry=asymmetry,
            observations=observations
        )
        self._state = SessionState.COMPLETE

        logger.info(f"Completed {self.joint.joint_id} session: "
                    f"left n={left.count}, right n={right.count}, "
                    f"{len(observations)} observation(s)")
        return self._report
