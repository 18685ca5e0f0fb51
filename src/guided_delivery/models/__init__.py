"""
Data Models
===========

Typed values passed through the navigation core.

This module re-exports all data models for convenient access.

Models:
    Position:
        - RawFix: Schema for fixes reported by provider adapters
        - PositionSource: PRIMARY_INDOOR or FALLBACK_SATELLITE
        - PositionSample: Validated position sample
        - TargetPoint: Delivery destination

    Navigation:
        - NavigationVector: Distance, bearing, vertical delta, floor delta
        - ArrivalPhase, ArrivalState: Arrival state machine state
        - ArrivalReason: Reason code for each arrival decision
        - ColorClass, IndicatorTransform: Indicator presentation
        - NavigationUpdate: Per-sample output to the rendering layer
"""

from guided_delivery.models.position import (
    PositionSample,
    PositionSource,
    RawFix,
    TargetPoint,
)
from guided_delivery.models.navigation import (
    ArrivalPhase,
    ArrivalState,
    ColorClass,
    IndicatorTransform,
    NavigationUpdate,
    NavigationVector,
)
from guided_delivery.models.reason_codes import ArrivalReason

__all__ = [
    # Position
    "RawFix",
    "PositionSource",
    "PositionSample",
    "TargetPoint",
    # Navigation
    "NavigationVector",
    "ArrivalPhase",
    "ArrivalState",
    "ArrivalReason",
    "ColorClass",
    "IndicatorTransform",
    "NavigationUpdate",
]
