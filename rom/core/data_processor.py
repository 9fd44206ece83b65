# rom/core/data_processor.py
import math
import numpy as np
from typing import Dict, Iterable, Optional, Union, Any
from dataclasses import dataclass

from rom.core.base import AngleSample


@dataclass(frozen=True)
class SideStats:
    """Summary of one side's angle samples. min/max/mean are None when count is 0."""
    count: int = 0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "min": self.min,
            "max": self.max,
            "mean": self.mean
        }


def compute_stats(samples: Iterable[Union[float, AngleSample]]) -> SideStats:
    """
    Reduce a sample sequence to count/min/max/mean.

    Non-finite values are filtered out first. An empty (or all non-finite)
    input yields count 0 with undefined statistics.

    Args:
        samples: Angle values or AngleSample records

    Returns:
        SideStats for the finite values
    """
    values = np.array(
        [s.value if isinstance(s, AngleSample) else s for s in samples],
        dtype=float
    )
    values = values[np.isfinite(values)]

    if values.size == 0:
        return SideStats()

    return SideStats(
        count=int(values.size),
        min=float(values.min()),
        max=float(values.max()),
        mean=math.fsum(values) / values.size
    )
