"""
Indicator Transform
===================

Maps a NavigationVector and the device heading onto the presentation
transform of the directional indicator.

Formulas:
    rotation = normalize(bearing − heading) into (−180, 180]
    tilt     = 0 if floor_delta is 0/None, else
               sign(vertical_delta) · min(45, atan(|vertical_delta| / max(d, ε)))
    scale    = linear from max_scale at near_distance down to min_scale at
               far_distance, clamped at both ends
    color    = ARRIVED > FLOOR_CHANGE_REQUIRED > ALIGNED_ON_FLOOR > DEFAULT

Pure function. No I/O, no shared mutable state.
"""

import math

import numpy as np

from guided_delivery.models.navigation import (
    ArrivalState,
    ColorClass,
    IndicatorTransform,
    NavigationVector,
)


# Guards the tilt division at zero horizontal distance
DISTANCE_EPSILON_METERS = 1e-6

# Hard limit on indicator tilt in either direction
TILT_LIMIT_DEGREES = 45.0


def relative_rotation(bearing_degrees: float, heading_degrees: float) -> float:
    """
    Turn needed from the current heading to face the bearing.

    Returns:
        Angle in (-180, 180]. Positive turns clockwise (right).
    """
    angle = (bearing_degrees - heading_degrees) % 360.0
    if angle > 180.0:
        angle -= 360.0
    return angle


class IndicatorTransformCalculator:
    """
    Calculator for the directional indicator transform.

    Attributes:
        min_scale: Smallest scale (far away)
        max_scale: Largest scale (close by)
        near_distance_meters: Distance reaching max_scale
        far_distance_meters: Distance reaching min_scale
        aligned_tolerance_degrees: Max |rotation| counted as aligned
        max_tilt_degrees: Tilt clamp
    """

    def __init__(
        self,
        min_scale: float = 0.3,
        max_scale: float = 1.5,
        near_distance_meters: float = 1.0,
        far_distance_meters: float = 50.0,
        aligned_tolerance_degrees: float = 15.0,
        max_tilt_degrees: float = 45.0,
    ) -> None:
        if min_scale <= 0 or min_scale > max_scale:
            raise ValueError("scale range must satisfy 0 < min_scale <= max_scale")
        if not 0 <= near_distance_meters < far_distance_meters:
            raise ValueError("need 0 <= near_distance_meters < far_distance_meters")
        if not 0 < max_tilt_degrees <= TILT_LIMIT_DEGREES:
            raise ValueError(f"max_tilt_degrees must be in (0, {TILT_LIMIT_DEGREES}]")

        self.min_scale = min_scale
        self.max_scale = max_scale
        self.near_distance_meters = near_distance_meters
        self.far_distance_meters = far_distance_meters
        self.aligned_tolerance_degrees = aligned_tolerance_degrees
        self.max_tilt_degrees = max_tilt_degrees

    def compute(
        self,
        vector: NavigationVector,
        device_heading_degrees: float,
        arrival_state: ArrivalState,
    ) -> IndicatorTransform:
        """
        Compute the indicator transform.

        Args:
            vector: Navigation vector to the target
            device_heading_degrees: Direction the device is facing (0 = North)
            arrival_state: Current arrival state

        Returns:
            IndicatorTransform
        """
        rotation = relative_rotation(vector.bearing_degrees, device_heading_degrees)
        tilt = self.vertical_tilt(vector)
        scale = self.scale_for_distance(vector.horizontal_distance_meters)

        if arrival_state.is_terminal:
            color = ColorClass.ARRIVED
        elif vector.requires_floor_change:
            color = ColorClass.FLOOR_CHANGE_REQUIRED
        elif abs(rotation) <= self.aligned_tolerance_degrees:
            color = ColorClass.ALIGNED_ON_FLOOR
        else:
            color = ColorClass.DEFAULT

        return IndicatorTransform(
            rotation_degrees=rotation,
            vertical_tilt_degrees=tilt,
            scale_factor=scale,
            color_class=color,
        )

    def vertical_tilt(self, vector: NavigationVector) -> float:
        """Tilt toward the target floor, clamped to ±max_tilt_degrees."""
        if not vector.requires_floor_change or vector.vertical_delta_meters == 0:
            return 0.0

        rise = abs(vector.vertical_delta_meters)
        run = max(vector.horizontal_distance_meters, DISTANCE_EPSILON_METERS)
        tilt = min(self.max_tilt_degrees, math.degrees(math.atan(rise / run)))
        return math.copysign(tilt, vector.vertical_delta_meters)

    def scale_for_distance(self, distance_meters: float) -> float:
        """Monotonically non-increasing scale, clamped to [min_scale, max_scale]."""
        scale = np.interp(
            distance_meters,
            [self.near_distance_meters, self.far_distance_meters],
            [self.max_scale, self.min_scale],
        )
        return float(np.clip(scale, self.min_scale, self.max_scale))
