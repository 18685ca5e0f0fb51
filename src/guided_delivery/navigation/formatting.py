"""
Guidance Formatting
===================

Human-readable captions for the rendering layer.

These helpers only format values computed elsewhere. They never feed
back into arrival or indicator logic.
"""

from guided_delivery.models.navigation import (
    ArrivalState,
    ColorClass,
    IndicatorTransform,
    NavigationVector,
)


_CARDINALS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def format_distance(meters: float) -> str:
    """Format a distance: "42m" below 1 km, "1.20km" above."""
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.2f}km"


def format_accuracy(meters: float) -> str:
    """Format an accuracy radius: "±50cm", "±8m", "±1.50km"."""
    if meters < 1:
        return f"±{round(meters * 100)}cm"
    if meters < 1000:
        return f"±{round(meters)}m"
    return f"±{meters / 1000:.2f}km"


def accuracy_quality(meters: float) -> str:
    """Bucket an accuracy radius into excellent/good/fair/poor."""
    if meters <= 5:
        return "excellent"
    if meters <= 15:
        return "good"
    if meters <= 50:
        return "fair"
    return "poor"


def format_heading(degrees: float) -> str:
    """Format a heading as cardinal direction plus degrees, e.g. "NE (44°)"."""
    normalized = degrees % 360.0
    index = round(normalized / 45) % 8
    return f"{_CARDINALS[index]} ({round(normalized)}°)"


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_floor(floor: int) -> str:
    """Format a floor level: "Ground Floor", "1st Floor", "Basement 1"."""
    if floor == 0:
        return "Ground Floor"
    if floor < 0:
        return f"Basement {abs(floor)}"
    return f"{_ordinal(floor)} Floor"


def describe_guidance(
    vector: NavigationVector,
    transform: IndicatorTransform,
    arrival_state: ArrivalState,
) -> str:
    """
    Caption shown under the directional indicator.

    Examples:
        "Arrived"
        "GO UP 2 Floors"
        "Straight ahead, 12m"
        "Turn right 40°, 12m"
    """
    if arrival_state.is_terminal:
        return "Arrived"

    if vector.requires_floor_change:
        floors = abs(vector.floor_delta)
        direction = "GO UP" if vector.floor_delta > 0 else "GO DOWN"
        plural = "s" if floors > 1 else ""
        return f"{direction} {floors} Floor{plural}"

    distance = format_distance(vector.horizontal_distance_meters)
    if transform.color_class == ColorClass.ALIGNED_ON_FLOOR:
        return f"Straight ahead, {distance}"

    side = "right" if transform.rotation_degrees > 0 else "left"
    return f"Turn {side} {round(abs(transform.rotation_degrees))}°, {distance}"
