"""
Position Models
===============

Typed position data passed from the positioning layer to navigation.

Models:
    - RawFix: Boundary schema for fixes reported by provider adapters
    - PositionSource: Which provider produced a sample
    - PositionSample: Canonical, validated position sample
    - TargetPoint: Static delivery destination for one session

Raw Fix Contract (from provider adapters):
    {
        "latitude": 51.5074,
        "longitude": -0.1278,
        "altitude": 12.4,
        "floor": 2,
        "accuracy": 1.8,
        "heading": 87.0,
        "timestamp": 1707321234567
    }

Design Rules:
    - RawFix is the ONLY place where provider output is parsed
    - PositionSample and TargetPoint are immutable once built
    - Out-of-range values raise InvalidSample at construction
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from guided_delivery.errors import InvalidSample


class PositionSource(str, Enum):
    """
    Provider that produced a sample.

    Attributes:
        PRIMARY_INDOOR: Venue-mapped indoor positioning (higher accuracy)
        FALLBACK_SATELLITE: Satellite positioning (broadly available)
    """

    PRIMARY_INDOOR = "PRIMARY_INDOOR"
    FALLBACK_SATELLITE = "FALLBACK_SATELLITE"


class RawFix(BaseModel):
    """
    Schema for a single fix reported by a provider adapter.

    Any fix that does not conform (missing fields, NaN/inf, coordinates
    out of range, negative accuracy) fails validation and is dropped by
    the stream.

    Attributes:
        latitude: Degrees, WGS84
        longitude: Degrees, WGS84
        altitude: Meters above sea level, if known
        floor: Discrete building floor, if known
        accuracy: Horizontal accuracy radius in meters
        heading: Device heading in degrees, if known
        timestamp: Capture time in UNIX milliseconds
    """

    model_config = ConfigDict(allow_inf_nan=False, frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude (deg)")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude (deg)")
    altitude: Optional[float] = Field(default=None, description="Altitude (m)")
    floor: Optional[int] = Field(default=None, description="Floor level")
    accuracy: float = Field(..., ge=0.0, description="Horizontal accuracy (m)")
    heading: Optional[float] = Field(default=None, description="Heading (deg)")
    timestamp: int = Field(..., ge=0, description="Capture time (UNIX ms)")


def _require_finite(name: str, value: Optional[float]) -> None:
    if value is not None and not math.isfinite(value):
        raise InvalidSample(f"{name} must be finite, got {value!r}")


def _check_coordinates(latitude: float, longitude: float) -> None:
    _require_finite("latitude", latitude)
    _require_finite("longitude", longitude)
    if not -90.0 <= latitude <= 90.0:
        raise InvalidSample(f"latitude out of range: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidSample(f"longitude out of range: {longitude}")


@dataclass(frozen=True, slots=True)
class PositionSample:
    """
    Validated position sample emitted by the PositionStream.

    Each sample supersedes the previous one logically. Consumers keep
    only the latest.

    Attributes:
        latitude: Degrees, WGS84
        longitude: Degrees, WGS84
        altitude: Meters, if known
        floor_level: Building floor, if known
        horizontal_accuracy_meters: Accuracy radius (m)
        heading_degrees: Device heading reported with the fix, if any
        captured_at_millis: Capture time (UNIX ms)
        source: Provider that produced the sample
    """

    latitude: float
    longitude: float
    altitude: Optional[float]
    floor_level: Optional[int]
    horizontal_accuracy_meters: float
    heading_degrees: Optional[float]
    captured_at_millis: int
    source: PositionSource

    def __post_init__(self) -> None:
        """Validate invariants."""
        _check_coordinates(self.latitude, self.longitude)
        _require_finite("altitude", self.altitude)
        _require_finite("heading_degrees", self.heading_degrees)
        _require_finite("horizontal_accuracy_meters", self.horizontal_accuracy_meters)
        if self.horizontal_accuracy_meters < 0:
            raise InvalidSample("horizontal_accuracy_meters must be non-negative")

    @classmethod
    def from_fix(
        cls,
        fix: RawFix,
        source: PositionSource,
        floor_level: Optional[int] = None,
    ) -> "PositionSample":
        """
        Build a sample from a validated raw fix.

        Args:
            fix: Validated provider fix
            source: Provider tag
            floor_level: Overrides fix.floor when the fix has none
        """
        return cls(
            latitude=fix.latitude,
            longitude=fix.longitude,
            altitude=fix.altitude,
            floor_level=fix.floor if fix.floor is not None else floor_level,
            horizontal_accuracy_meters=fix.accuracy,
            heading_degrees=fix.heading,
            captured_at_millis=fix.timestamp,
            source=source,
        )

    def __repr__(self) -> str:
        return (
            f"PositionSample(lat={self.latitude:.6f}, lon={self.longitude:.6f}, "
            f"floor={self.floor_level}, acc={self.horizontal_accuracy_meters:.1f}m, "
            f"src={self.source.value})"
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "floor_level": self.floor_level,
            "horizontal_accuracy_meters": round(self.horizontal_accuracy_meters, 2),
            "heading_degrees": self.heading_degrees,
            "captured_at_millis": self.captured_at_millis,
            "source": self.source.value,
        }


@dataclass(frozen=True, slots=True)
class TargetPoint:
    """
    Delivery destination, fixed for the lifetime of a session.

    Attributes:
        latitude: Degrees, WGS84
        longitude: Degrees, WGS84
        altitude: Meters, if recorded
        floor_level: Building floor, if recorded
    """

    latitude: float
    longitude: float
    altitude: Optional[float] = None
    floor_level: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        _check_coordinates(self.latitude, self.longitude)
        _require_finite("altitude", self.altitude)

    @classmethod
    def from_order_location(cls, location: Mapping[str, Any]) -> "TargetPoint":
        """
        Build a target from an order's recorded location.

        Accepts the order collaborator's location shape, where the floor
        is keyed as "floor" (or "floor_level").
        """
        floor = location.get("floor_level", location.get("floor"))
        altitude = location.get("altitude")
        return cls(
            latitude=float(location["latitude"]),
            longitude=float(location["longitude"]),
            altitude=float(altitude) if altitude is not None else None,
            floor_level=int(floor) if floor is not None else None,
        )
