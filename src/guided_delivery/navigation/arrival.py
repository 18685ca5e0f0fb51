"""
Arrival State Machine
=====================

Deterministic arrival detection with a time-based confirmation window.

States:
    NAVIGATING → CONFIRMING(started_at) → ARRIVED (terminal)

Transition Rules (per NavigationVector):
    NAVIGATING:
        distance <= threshold, vector valid, floors match
            → CONFIRMING(now)
    CONFIRMING(started_at):
        distance > threshold or floors differ   → NAVIGATING (timer cancelled)
        now - started_at >= window              → ARRIVED (notify once)
        otherwise                               → stay CONFIRMING
    ARRIVED:
        ignore all further vectors

Validity Checks (rejected vectors never advance the machine):
    - distance <= 0 is nonsensical
    - distance < implausible_distance while accuracy > poor_accuracy
      indicates a fused/erroneous fix rather than true proximity

Confirmation Timer:
    Entering CONFIRMING schedules an explicit, cancellable callback at the
    end of the window. If it fires while still CONFIRMING, arrival is
    declared without waiting for the next sample. Leaving CONFIRMING, or
    cancelling the machine, cancels the callback. A cancelled machine
    never fires listeners again.

Clock:
    Dwell time is measured on a monotonic millisecond clock, the timebase
    of the asyncio loop. If an injected clock moves backwards while
    CONFIRMING, the window restarts at the new time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol

from guided_delivery.models.navigation import (
    ArrivalPhase,
    ArrivalState,
    NavigationVector,
)
from guided_delivery.models.position import PositionSample
from guided_delivery.models.reason_codes import ArrivalReason


logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """
    Anything that can run a callback after a delay.

    asyncio event loops satisfy this protocol. The returned handle must
    expose cancel().
    """

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Any:
        ...


def monotonic_millis() -> int:
    """Monotonic time in milliseconds, the same timebase as the asyncio loop."""
    return int(time.monotonic() * 1000)


class ConfirmationTimer:
    """
    Cancellable one-shot timer for the confirmation window.

    Uses the injected scheduler, or the running asyncio loop when none is
    given. Without either, start() is a no-op and arrival is confirmed by
    the next in-threshold sample instead.
    """

    def __init__(self, scheduler: Optional[Scheduler] = None) -> None:
        self._scheduler = scheduler
        self._handle: Optional[Any] = None

    @property
    def active(self) -> bool:
        """Whether a callback is currently scheduled."""
        return self._handle is not None

    def start(self, delay_millis: int, callback: Callable[[], None]) -> bool:
        """
        Schedule callback after delay_millis, replacing any pending one.

        Returns:
            True if a callback was scheduled
        """
        self.cancel()

        scheduler = self._scheduler
        if scheduler is None:
            try:
                scheduler = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No scheduler available, timer not started")
                return False

        self._handle = scheduler.call_later(
            max(0, delay_millis) / 1000.0, self._fire, callback
        )
        return True

    def cancel(self) -> bool:
        """
        Cancel the pending callback.

        Returns:
            True if a pending callback was cancelled
        """
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()


@dataclass
class TransitionResult:
    """Result of an arrival state evaluation."""

    state: ArrivalState
    reason: ArrivalReason
    transition_occurred: bool

    def __repr__(self) -> str:
        return (
            f"TransitionResult({self.state.phase.value}, "
            f"{self.reason.value}, changed={self.transition_occurred})"
        )


StateListener = Callable[[ArrivalState], None]
ArrivedListener = Callable[[], None]


class ArrivalStateMachine:
    """
    Session-scoped arrival detector.

    Consumes NavigationVectors and exposes one of NAVIGATING, CONFIRMING
    or ARRIVED. Fires state-change listeners on every phase change and
    arrived listeners exactly once.

    Attributes:
        arrival_threshold_meters: Distance that qualifies as "at target"
        confirmation_window_millis: Required continuous dwell time

    Example:
        machine = ArrivalStateMachine(arrival_threshold_meters=3.0)
        machine.on_arrived(lambda: print("arrived"))

        for sample in samples:
            vector = calculator.compute(sample, target)
            result = machine.update(vector, sample=sample)
    """

    def __init__(
        self,
        arrival_threshold_meters: float = 3.0,
        confirmation_window_millis: int = 2000,
        poor_accuracy_meters: float = 10.0,
        implausible_distance_meters: float = 0.1,
        clock: Optional[Callable[[], int]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        """
        Initialize arrival state machine.

        Args:
            arrival_threshold_meters: Arrival distance threshold
            confirmation_window_millis: Dwell time before arrival
            poor_accuracy_meters: Accuracy above which tiny distances are rejected
            implausible_distance_meters: Distance below which those are rejected
            clock: Millisecond clock (defaults to monotonic time)
            scheduler: Timer scheduler (defaults to the running asyncio loop)
        """
        if arrival_threshold_meters <= 0:
            raise ValueError("arrival_threshold_meters must be positive")
        if confirmation_window_millis < 0:
            raise ValueError("confirmation_window_millis must be non-negative")

        self.arrival_threshold_meters = arrival_threshold_meters
        self.confirmation_window_millis = confirmation_window_millis
        self.poor_accuracy_meters = poor_accuracy_meters
        self.implausible_distance_meters = implausible_distance_meters

        self._clock = clock or monotonic_millis
        self._timer = ConfirmationTimer(scheduler)
        self._state = ArrivalState.navigating()
        self._cancelled = False
        self._arrival_notified = False

        self._state_listeners: List[StateListener] = []
        self._arrived_listeners: List[ArrivedListener] = []

        logger.info(
            f"ArrivalStateMachine initialized: "
            f"threshold={arrival_threshold_meters}m, "
            f"window={confirmation_window_millis}ms"
        )

    @property
    def state(self) -> ArrivalState:
        """Current arrival state."""
        return self._state

    @property
    def timer_active(self) -> bool:
        """Whether the confirmation timer is pending."""
        return self._timer.active

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def on_state_change(self, listener: StateListener) -> None:
        """Register a listener for every phase change."""
        self._state_listeners.append(listener)

    def on_arrived(self, listener: ArrivedListener) -> None:
        """Register a listener for the one-time arrival event."""
        self._arrived_listeners.append(listener)

    def update(
        self,
        vector: NavigationVector,
        sample: Optional[PositionSample] = None,
        now_millis: Optional[int] = None,
    ) -> TransitionResult:
        """
        Evaluate one navigation vector.

        Args:
            vector: Latest navigation vector
            sample: Sample the vector was computed from (for accuracy checks)
            now_millis: Evaluation time (defaults to the clock)

        Returns:
            TransitionResult for this evaluation
        """
        if self._cancelled or self._state.is_terminal:
            return TransitionResult(
                state=self._state,
                reason=ArrivalReason.SESSION_ALREADY_TERMINAL,
                transition_occurred=False,
            )

        if now_millis is None:
            now_millis = self._clock()

        if self._state.phase == ArrivalPhase.NAVIGATING:
            return self._from_navigating(vector, sample, now_millis)
        return self._from_confirming(vector, sample, now_millis)

    def cancel(self) -> None:
        """
        Cancel the confirmation timer and stop all further transitions.

        Called when the session is torn down.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if self._timer.cancel():
            logger.debug("Confirmation timer cancelled on teardown")

    # -------------------------------------------------------------------------
    # Transition handlers
    # -------------------------------------------------------------------------

    def _from_navigating(
        self,
        vector: NavigationVector,
        sample: Optional[PositionSample],
        now_millis: int,
    ) -> TransitionResult:
        if vector.horizontal_distance_meters > self.arrival_threshold_meters:
            return self._stay(ArrivalReason.OUTSIDE_THRESHOLD)

        rejection = self._reject_reason(vector, sample)
        if rejection is not None:
            return self._stay(rejection)

        if vector.requires_floor_change:
            return self._stay(ArrivalReason.FLOOR_MISMATCH)

        self._set_state(ArrivalState.confirming(now_millis))
        self._timer.start(self.confirmation_window_millis, self._on_window_elapsed)
        return TransitionResult(
            state=self._state,
            reason=ArrivalReason.WITHIN_THRESHOLD,
            transition_occurred=True,
        )

    def _from_confirming(
        self,
        vector: NavigationVector,
        sample: Optional[PositionSample],
        now_millis: int,
    ) -> TransitionResult:
        if vector.horizontal_distance_meters > self.arrival_threshold_meters:
            return self._reset(ArrivalReason.CONFIRMATION_CANCELLED)

        if vector.requires_floor_change:
            return self._reset(ArrivalReason.FLOOR_MISMATCH)

        rejection = self._reject_reason(vector, sample)
        if rejection is not None:
            return self._stay(rejection)

        elapsed = self._elapsed_millis(now_millis)
        if elapsed >= self.confirmation_window_millis:
            self._declare_arrival(elapsed)
            return TransitionResult(
                state=self._state,
                reason=ArrivalReason.CONFIRMED,
                transition_occurred=True,
            )

        return self._stay(ArrivalReason.CONFIRMATION_PENDING)

    def _elapsed_millis(self, now_millis: int) -> int:
        """Dwell time inside the window, restarting it if the clock went back."""
        started_at = self._state.started_at_millis
        if now_millis < started_at:
            logger.warning(
                f"Clock moved back {started_at - now_millis}ms while confirming, "
                f"restarting confirmation window"
            )
            self._state = ArrivalState.confirming(now_millis)
            return 0
        return now_millis - started_at

    def _reject_reason(
        self,
        vector: NavigationVector,
        sample: Optional[PositionSample],
    ) -> Optional[ArrivalReason]:
        """Return a rejection reason for an invalid vector, or None."""
        distance = vector.horizontal_distance_meters
        if distance <= 0:
            return ArrivalReason.NONPOSITIVE_DISTANCE
        if (
            sample is not None
            and distance < self.implausible_distance_meters
            and sample.horizontal_accuracy_meters > self.poor_accuracy_meters
        ):
            return ArrivalReason.IMPLAUSIBLE_PRECISION
        return None

    def _on_window_elapsed(self) -> None:
        """Confirmation timer callback."""
        if self._cancelled or self._state.phase != ArrivalPhase.CONFIRMING:
            return

        elapsed = self._elapsed_millis(self._clock())
        if elapsed >= self.confirmation_window_millis:
            self._declare_arrival(elapsed)
        else:
            # Scheduler ran early, or the window restarted
            self._timer.start(
                self.confirmation_window_millis - elapsed,
                self._on_window_elapsed,
            )

    def _declare_arrival(self, dwell_millis: int) -> None:
        self._timer.cancel()
        logger.info(f"Arrival confirmed after {dwell_millis}ms inside threshold")
        self._set_state(ArrivalState.arrived())

        if self._arrival_notified:
            return
        self._arrival_notified = True
        for listener in list(self._arrived_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Arrived listener failed: {e}")

    def _reset(self, reason: ArrivalReason) -> TransitionResult:
        self._timer.cancel()
        logger.info(f"Confirmation cancelled ({reason.value})")
        self._set_state(ArrivalState.navigating())
        return TransitionResult(
            state=self._state,
            reason=reason,
            transition_occurred=True,
        )

    def _stay(self, reason: ArrivalReason) -> TransitionResult:
        return TransitionResult(
            state=self._state,
            reason=reason,
            transition_occurred=False,
        )

    def _set_state(self, state: ArrivalState) -> None:
        previous = self._state
        self._state = state
        logger.debug(f"Arrival state: {previous.phase.value} → {state.phase.value}")
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener failed: {e}")
