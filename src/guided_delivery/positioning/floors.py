"""
Floor Estimation
================

Estimates the building floor from altitude for providers that report
altitude but no floor (typically satellite positioning).

The ground reference is the LOWEST altitude observed for the venue,
since the ground floor is the lowest point any order is placed from.
A manual offset corrects venues whose first reference sample was not
taken on the ground floor.

    floor = round((altitude - ground_altitude) / floor_height) + offset
    floor clamped to [0, max_floor]

One estimator belongs to one venue. There is no shared module state.
"""

import logging
from typing import List, Optional


logger = logging.getLogger(__name__)


class FloorEstimator:
    """
    Venue-scoped altitude → floor estimator.

    Attributes:
        floor_height_meters: Approximate floor height for the venue
        floor_offset: Manual correction added to every estimate
        max_floor: Upper clamp for estimates

    Example:
        estimator = FloorEstimator(floor_height_meters=4.0)
        estimator.record_reference_altitude(31.0)   # order placed at ground
        estimator.estimate(39.2)                    # -> 2
    """

    def __init__(
        self,
        floor_height_meters: float = 4.0,
        floor_offset: int = 0,
        max_floor: int = 100,
        ground_altitude: Optional[float] = None,
    ) -> None:
        if floor_height_meters <= 0:
            raise ValueError("floor_height_meters must be positive")

        self.floor_height_meters = floor_height_meters
        self.floor_offset = floor_offset
        self.max_floor = max_floor
        self._samples: List[float] = []
        if ground_altitude is not None:
            self.record_reference_altitude(ground_altitude)

    @property
    def ground_altitude(self) -> Optional[float]:
        """Lowest reference altitude recorded, or None."""
        return min(self._samples) if self._samples else None

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def record_reference_altitude(self, altitude: float) -> None:
        """Record an altitude observed at a known venue location."""
        self._samples.append(altitude)
        logger.info(
            f"Venue ground altitude: {self.ground_altitude:.1f}m "
            f"(from {len(self._samples)} samples)"
        )

    def reset(self) -> None:
        """Forget all reference altitudes and the manual offset."""
        self._samples.clear()
        self.floor_offset = 0
        logger.info("FloorEstimator reset")

    def estimate(self, altitude: float) -> Optional[int]:
        """
        Estimate the floor for an altitude.

        Returns:
            Floor level, or None if no reference altitude is known
        """
        ground = self.ground_altitude
        if ground is None:
            return None

        relative = altitude - ground
        floor = round(relative / self.floor_height_meters) + self.floor_offset
        return max(0, min(self.max_floor, floor))
