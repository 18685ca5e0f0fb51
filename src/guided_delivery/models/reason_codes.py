"""
Reason Codes
============

Fixed set of machine-readable reason codes for arrival decisions.

Each ArrivalStateMachine update returns exactly ONE reason code that
explains why the machine is in its current state.

Rules:
    - No free-text explanations
    - One clear cause per code
"""

from enum import Enum


class ArrivalReason(str, Enum):
    """
    Machine-readable arrival decision codes.

    Attributes:
        OUTSIDE_THRESHOLD: Distance is above the arrival threshold
        WITHIN_THRESHOLD: Distance qualified, confirmation window opened
        CONFIRMATION_PENDING: Still inside threshold, window not elapsed
        CONFIRMATION_CANCELLED: Left the threshold while confirming
        CONFIRMED: Window elapsed inside threshold, arrival declared
        FLOOR_MISMATCH: Close enough horizontally but on another floor
        NONPOSITIVE_DISTANCE: Distance <= 0, rejected as nonsensical
        IMPLAUSIBLE_PRECISION: Tiny distance paired with poor accuracy
        SESSION_ALREADY_TERMINAL: Update after arrival, ignored
    """

    # Navigating
    OUTSIDE_THRESHOLD = "OUTSIDE_THRESHOLD"

    # Confirming
    WITHIN_THRESHOLD = "WITHIN_THRESHOLD"
    CONFIRMATION_PENDING = "CONFIRMATION_PENDING"
    CONFIRMATION_CANCELLED = "CONFIRMATION_CANCELLED"

    # Arrived
    CONFIRMED = "CONFIRMED"

    # Rejected samples
    FLOOR_MISMATCH = "FLOOR_MISMATCH"
    NONPOSITIVE_DISTANCE = "NONPOSITIVE_DISTANCE"
    IMPLAUSIBLE_PRECISION = "IMPLAUSIBLE_PRECISION"

    # Terminal
    SESSION_ALREADY_TERMINAL = "SESSION_ALREADY_TERMINAL"
