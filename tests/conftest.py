"""
Test Configuration
==================

Pytest fixtures and test helpers for the navigation core.
"""

import math
from typing import Any, Callable, List, Optional

import pytest

from guided_delivery.models.navigation import NavigationVector
from guided_delivery.models.position import PositionSample, PositionSource, TargetPoint


METERS_PER_DEGREE_LAT = 111_194.93


def offset_fix(
    target: TargetPoint,
    north_m: float = 0.0,
    east_m: float = 0.0,
    timestamp: int = 0,
    floor: Optional[int] = None,
    accuracy: float = 1.0,
    heading: Optional[float] = None,
    altitude: Optional[float] = None,
) -> dict:
    """Raw fix dict located north_m/east_m meters from the target."""
    cos_lat = math.cos(math.radians(target.latitude))
    return {
        "latitude": target.latitude + north_m / METERS_PER_DEGREE_LAT,
        "longitude": target.longitude + east_m / (METERS_PER_DEGREE_LAT * cos_lat),
        "altitude": altitude,
        "floor": floor,
        "accuracy": accuracy,
        "heading": heading,
        "timestamp": timestamp,
    }


def make_sample(
    latitude: float = 0.0,
    longitude: float = 0.0,
    altitude: Optional[float] = None,
    floor_level: Optional[int] = None,
    accuracy: float = 1.0,
    heading: Optional[float] = None,
    captured_at_millis: int = 0,
    source: PositionSource = PositionSource.PRIMARY_INDOOR,
) -> PositionSample:
    return PositionSample(
        latitude=latitude,
        longitude=longitude,
        altitude=altitude,
        floor_level=floor_level,
        horizontal_accuracy_meters=accuracy,
        heading_degrees=heading,
        captured_at_millis=captured_at_millis,
        source=source,
    )


def make_vector(
    distance: float,
    bearing: float = 0.0,
    vertical: float = 0.0,
    floor_delta: Optional[int] = None,
) -> NavigationVector:
    return NavigationVector(
        horizontal_distance_meters=distance,
        bearing_degrees=bearing,
        vertical_delta_meters=vertical,
        floor_delta=floor_delta,
    )


class FakeHandle:
    """Timer handle recorded by FakeScheduler."""

    def __init__(self, delay: float, callback: Callable[..., Any], args: tuple) -> None:
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler that only runs callbacks when told to."""

    def __init__(self) -> None:
        self.handles: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeHandle:
        handle = FakeHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def fire_pending(self) -> int:
        fired = 0
        for handle in self.pending:
            handle.fired = True
            handle.callback(*handle.args)
            fired += 1
        return fired


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


@pytest.fixture
def target():
    """Target on floor 2 of a central London venue."""
    return TargetPoint(latitude=51.50135, longitude=-0.14189, floor_level=2)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()
