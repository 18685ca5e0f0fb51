"""
Positioning Module
==================

Position provider adapters and the fused position stream.

This module provides the ingestion layer of the navigation core:
    - PositionProvider: Protocol for indoor/satellite provider adapters
    - ScriptedPositionProvider: Deterministic provider for tests and demos
    - PositionStream: Primary → fallback stream of tagged PositionSamples
    - FloorEstimator: Venue-scoped altitude → floor estimation

Example:
    from guided_delivery.positioning import PositionStream

    stream = PositionStream(primary=indoor_adapter, fallback=gps_adapter)
    unsubscribe = await stream.subscribe(on_sample, on_error)

    # Later, stop all sensors
    unsubscribe()
"""

from guided_delivery.positioning.providers import (
    PositionProvider,
    ProviderLost,
    ScriptedPositionProvider,
)
from guided_delivery.positioning.floors import FloorEstimator
from guided_delivery.positioning.stream import PositionStream, PositionStreamMetrics


__all__ = [
    "PositionProvider",
    "ProviderLost",
    "ScriptedPositionProvider",
    "FloorEstimator",
    "PositionStream",
    "PositionStreamMetrics",
]
