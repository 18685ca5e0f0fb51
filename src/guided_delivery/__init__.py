"""
Guided Delivery
===============

Positioning fusion and guided-navigation core for in-venue deliveries.

This package guides a staff member to the spot where a customer placed an
order. It fuses indoor positioning with a satellite fallback, computes the
distance/bearing/floor offset to the target, decides when arrival may be
declared, and produces the transform of an on-screen directional
indicator.

Components:
    - positioning: Provider adapters and the primary → fallback PositionStream
    - navigation: Vector math, arrival state machine, indicator transform
    - session: Session-scoped wiring (start_navigation_session)
    - config: YAML/environment configuration

Example:
    from guided_delivery import TargetPoint, start_navigation_session

    session = await start_navigation_session(
        TargetPoint(latitude=51.5, longitude=-0.12, floor_level=2),
        primary=indoor_adapter,
        fallback=gps_adapter,
        on_vector_update=render,
    )
"""

__version__ = "0.1.0"

from guided_delivery.errors import InvalidSample, NavigationError, ProviderUnavailable
from guided_delivery.models import (
    ArrivalPhase,
    ArrivalState,
    ColorClass,
    IndicatorTransform,
    NavigationUpdate,
    NavigationVector,
    PositionSample,
    PositionSource,
    TargetPoint,
)
from guided_delivery.session import NavigationSession, start_navigation_session

__all__ = [
    "__version__",
    "NavigationError",
    "InvalidSample",
    "ProviderUnavailable",
    "ArrivalPhase",
    "ArrivalState",
    "ColorClass",
    "IndicatorTransform",
    "NavigationUpdate",
    "NavigationVector",
    "PositionSample",
    "PositionSource",
    "TargetPoint",
    "NavigationSession",
    "start_navigation_session",
]
