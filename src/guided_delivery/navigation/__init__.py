"""
Navigation Module
=================

Pure navigation math and the arrival state machine.

Components:
    - vector.py: NavigationVectorCalculator (haversine + forward azimuth)
    - arrival.py: ArrivalStateMachine with a cancellable confirmation timer
    - indicator.py: IndicatorTransformCalculator (rotation, tilt, scale, color)
    - formatting.py: Guidance captions for the rendering layer

Data Flow:
    PositionSample → NavigationVector → {ArrivalStateMachine,
                                         IndicatorTransformCalculator}
"""

from guided_delivery.navigation.vector import (
    NavigationVectorCalculator,
    forward_bearing,
    haversine_distance,
)
from guided_delivery.navigation.arrival import (
    ArrivalStateMachine,
    ConfirmationTimer,
    TransitionResult,
)
from guided_delivery.navigation.indicator import IndicatorTransformCalculator
from guided_delivery.navigation.formatting import describe_guidance

__all__ = [
    "NavigationVectorCalculator",
    "haversine_distance",
    "forward_bearing",
    "ArrivalStateMachine",
    "ConfirmationTimer",
    "TransitionResult",
    "IndicatorTransformCalculator",
    "describe_guidance",
]
