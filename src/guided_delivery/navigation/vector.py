"""
Navigation Vector
=================

Pure geodesy for turning (current sample, target) into a NavigationVector.

Formulas:
    Haversine distance:
        a = sin²(Δφ/2) + cos φ1 · cos φ2 · sin²(Δλ/2)
        d = 2R · atan2(√a, √(1 − a))

    Forward azimuth:
        θ = atan2(sin Δλ · cos φ2,
                  cos φ1 · sin φ2 − sin φ1 · cos φ2 · cos Δλ)

    Vertical delta:
        altitude difference when both altitudes are known, otherwise
        floor_delta × floor_height_meters when both floors are known,
        otherwise 0.

The atan2 form of haversine keeps centimeter precision at short ranges.
No small-angle (equirectangular) shortcut is used.

Example:
    calculator = NavigationVectorCalculator(floor_height_meters=4.0)
    vector = calculator.compute(sample, target)
    print(vector.horizontal_distance_meters, vector.bearing_degrees)
"""

import logging
import math
from typing import Optional

from guided_delivery.models.navigation import NavigationVector
from guided_delivery.models.position import PositionSample, TargetPoint


logger = logging.getLogger(__name__)


EARTH_RADIUS_METERS = 6371e3


def normalize_bearing(degrees: float) -> float:
    """Normalize an angle into [0, 360)."""
    result = degrees % 360.0
    # Tiny negative inputs round up to exactly 360.0
    if result >= 360.0:
        result = 0.0
    return result


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """
    Great-circle distance between two coordinates in meters.

    Args:
        lat1, lon1: First coordinate (degrees)
        lat2, lon2: Second coordinate (degrees)

    Returns:
        Distance in meters (>= 0)
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a a hair outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def forward_bearing(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """
    Initial compass bearing from the first coordinate to the second.

    Returns:
        Bearing in [0, 360), 0 = North. Identical points yield 0.0.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = (
        math.cos(phi1) * math.sin(phi2)
        - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    )
    if x == 0.0 and y == 0.0:
        return 0.0

    return normalize_bearing(math.degrees(math.atan2(y, x)))


class NavigationVectorCalculator:
    """
    Stateless calculator for navigation vectors.

    Holds only configuration. compute() performs no I/O, raises no domain
    errors for finite inputs, and returns identical output for identical
    input.

    Attributes:
        floor_height_meters: Height per floor used when altitude is missing
    """

    def __init__(self, floor_height_meters: float = 4.0) -> None:
        """
        Initialize calculator.

        Args:
            floor_height_meters: Approximate floor height (building-specific)
        """
        if floor_height_meters <= 0:
            raise ValueError("floor_height_meters must be positive")
        self.floor_height_meters = floor_height_meters

    def compute(
        self,
        current: PositionSample,
        target: TargetPoint,
    ) -> NavigationVector:
        """
        Compute the navigation vector from the current sample to the target.

        Args:
            current: Latest position sample
            target: Session target

        Returns:
            NavigationVector
        """
        distance = haversine_distance(
            current.latitude, current.longitude,
            target.latitude, target.longitude,
        )
        bearing = (
            forward_bearing(
                current.latitude, current.longitude,
                target.latitude, target.longitude,
            )
            if distance > 0
            else 0.0
        )

        floor_delta: Optional[int] = None
        if current.floor_level is not None and target.floor_level is not None:
            floor_delta = target.floor_level - current.floor_level

        if current.altitude is not None and target.altitude is not None:
            vertical_delta = target.altitude - current.altitude
        elif floor_delta is not None:
            vertical_delta = floor_delta * self.floor_height_meters
        else:
            vertical_delta = 0.0

        return NavigationVector(
            horizontal_distance_meters=distance,
            bearing_degrees=bearing,
            vertical_delta_meters=float(vertical_delta),
            floor_delta=floor_delta,
        )
