"""
Navigation Models
=================

Derived values recomputed on every position sample.

Models:
    - NavigationVector: Distance, bearing and vertical offset to the target
    - ArrivalPhase / ArrivalState: Arrival state machine state
    - ColorClass / IndicatorTransform: Presentation transform for the
      directional indicator
    - NavigationUpdate: Everything the rendering layer needs for one sample

None of these are persisted.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from guided_delivery.models.position import PositionSample


@dataclass(frozen=True, slots=True)
class NavigationVector:
    """
    Offset from the current position to the target.

    Attributes:
        horizontal_distance_meters: Great-circle distance, never negative
        bearing_degrees: Compass bearing to target in [0, 360), 0 = North
        vertical_delta_meters: Signed height difference (+ = target above)
        floor_delta: target floor - current floor, if both known
    """

    horizontal_distance_meters: float
    bearing_degrees: float
    vertical_delta_meters: float
    floor_delta: Optional[int]

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not math.isfinite(self.horizontal_distance_meters):
            raise ValueError("horizontal_distance_meters must be finite")
        if self.horizontal_distance_meters < 0:
            raise ValueError("horizontal_distance_meters must be non-negative")
        if not 0.0 <= self.bearing_degrees < 360.0:
            raise ValueError(f"bearing_degrees out of range: {self.bearing_degrees}")

    @property
    def requires_floor_change(self) -> bool:
        """Whether the target is on a known, different floor."""
        return self.floor_delta is not None and self.floor_delta != 0

    def __repr__(self) -> str:
        return (
            f"NavigationVector(dist={self.horizontal_distance_meters:.2f}m, "
            f"bearing={self.bearing_degrees:.1f}, "
            f"dz={self.vertical_delta_meters:+.1f}m, floors={self.floor_delta})"
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "horizontal_distance_meters": round(self.horizontal_distance_meters, 3),
            "bearing_degrees": round(self.bearing_degrees, 2),
            "vertical_delta_meters": round(self.vertical_delta_meters, 2),
            "floor_delta": self.floor_delta,
        }


class ArrivalPhase(str, Enum):
    """
    Phases of the arrival state machine.

    Attributes:
        NAVIGATING: Outside the arrival threshold (initial)
        CONFIRMING: Inside the threshold, waiting out the confirmation window
        ARRIVED: Arrival declared (terminal for the session)
    """

    NAVIGATING = "NAVIGATING"
    CONFIRMING = "CONFIRMING"
    ARRIVED = "ARRIVED"


@dataclass(frozen=True, slots=True)
class ArrivalState:
    """
    Current arrival state.

    started_at_millis is set only while CONFIRMING and records when the
    confirmation window opened.
    """

    phase: ArrivalPhase
    started_at_millis: Optional[int] = None

    def __post_init__(self) -> None:
        if (self.phase == ArrivalPhase.CONFIRMING) != (self.started_at_millis is not None):
            raise ValueError("started_at_millis is required for CONFIRMING only")

    @classmethod
    def navigating(cls) -> "ArrivalState":
        return cls(ArrivalPhase.NAVIGATING)

    @classmethod
    def confirming(cls, started_at_millis: int) -> "ArrivalState":
        return cls(ArrivalPhase.CONFIRMING, started_at_millis)

    @classmethod
    def arrived(cls) -> "ArrivalState":
        return cls(ArrivalPhase.ARRIVED)

    @property
    def is_terminal(self) -> bool:
        return self.phase == ArrivalPhase.ARRIVED

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "started_at_millis": self.started_at_millis,
        }


class ColorClass(str, Enum):
    """
    Color class of the directional indicator.

    Attributes:
        DEFAULT: Not facing the target
        ALIGNED_ON_FLOOR: Facing the target on the correct floor
        FLOOR_CHANGE_REQUIRED: Target is on another floor
        ARRIVED: Arrival declared
    """

    DEFAULT = "DEFAULT"
    ALIGNED_ON_FLOOR = "ALIGNED_ON_FLOOR"
    FLOOR_CHANGE_REQUIRED = "FLOOR_CHANGE_REQUIRED"
    ARRIVED = "ARRIVED"


@dataclass(frozen=True, slots=True)
class IndicatorTransform:
    """
    Presentation transform for the directional indicator.

    Attributes:
        rotation_degrees: Turn from current facing, in (-180, 180]
        vertical_tilt_degrees: Up/down tilt, clamped to [-45, 45]
        scale_factor: Depth cue, clamped to the configured scale range
        color_class: Indicator color class
    """

    rotation_degrees: float
    vertical_tilt_degrees: float
    scale_factor: float
    color_class: ColorClass

    def __repr__(self) -> str:
        return (
            f"IndicatorTransform(rot={self.rotation_degrees:+.1f}, "
            f"tilt={self.vertical_tilt_degrees:+.1f}, "
            f"scale={self.scale_factor:.2f}, color={self.color_class.value})"
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "rotation_degrees": round(self.rotation_degrees, 2),
            "vertical_tilt_degrees": round(self.vertical_tilt_degrees, 2),
            "scale_factor": round(self.scale_factor, 3),
            "color_class": self.color_class.value,
        }


@dataclass(frozen=True, slots=True)
class NavigationUpdate:
    """
    Output delivered to the rendering layer for each accepted sample.

    Attributes:
        sample: Position sample that produced this update
        vector: Navigation vector to the target
        transform: Indicator transform
        arrival_state: Arrival state after processing the sample
        instruction: Human-readable guidance caption
    """

    sample: PositionSample
    vector: NavigationVector
    transform: IndicatorTransform
    arrival_state: ArrivalState
    instruction: str

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "sample": self.sample.to_dict(),
            "vector": self.vector.to_dict(),
            "transform": self.transform.to_dict(),
            "arrival_state": self.arrival_state.to_dict(),
            "instruction": self.instruction,
        }
