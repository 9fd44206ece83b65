# rom/core/base.py
from typing import Dict, Tuple, Optional, Any, Mapping
from enum import Enum
from dataclasses import dataclass


class Side(Enum):
    """Body side an angle sample belongs to."""
    LEFT = "left"
    RIGHT = "right"


class SessionState(Enum):
    """Lifecycle of a sampling session."""
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    COMPLETE = "complete"


class ROMError(Exception):
    """Base class for ROM assessment errors."""


class SessionStateError(ROMError, RuntimeError):
    """Raised when a session operation is called from a state that does not allow it."""

    def __init__(self, operation: str, state: SessionState):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation}() while session is {state.value}")


class UnknownJointError(ROMError, KeyError):
    """Raised when a joint id is not in the catalog."""

    def __init__(self, joint_id: str):
        self.joint_id = joint_id
        super().__init__(joint_id)

    def __str__(self) -> str:
        return f"Unknown joint: {self.joint_id!r}"


@dataclass(frozen=True)
class Point:
    """Normalized 2D landmark position with a visibility score."""
    x: float
    y: float
    visibility: float = 1.0

    def as_xy_tuple(self) -> Tuple[float, float]:
        """Return just the x, y coordinates as a tuple."""
        return (self.x, self.y)

    def as_dict(self) -> Dict[str, float]:
        """Return the point as a dictionary."""
        return {"x": self.x, "y": self.y, "visibility": self.visibility}

    def is_visible(self, threshold: float) -> bool:
        return self.visibility >= threshold

    @classmethod
    def from_tuple(cls, point: Tuple[float, ...]) -> 'Point':
        """Create a Point from an (x, y) or (x, y, visibility) tuple."""
        return cls(x=point[0], y=point[1], visibility=point[2] if len(point) > 2 else 1.0)


# One frame from the landmark source: role name -> position, None when not detected.
LandmarkFrame = Mapping[str, Optional[Point]]


@dataclass(frozen=True)
class AngleSample:
    """A single finite angle measurement for one side."""
    side: Side
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"side": self.side.value, "value": self.value}
