"""
Navigation Session
==================

Session-scoped wiring of the navigation core.

One NavigationSession guides one delivery to one static target:

    PositionStream → NavigationVectorCalculator → ArrivalStateMachine
                                               → IndicatorTransformCalculator
                   → NavigationUpdate listeners (rendering layer)

Each sample fans out synchronously through the whole pipeline before the
next one is handled. All state lives on the session object. Starting a
new delivery means creating a new session.

Lifecycle:
    - start(): subscribes to the position stream (primary → fallback)
    - stop(): synchronously unsubscribes the stream and cancels the
      confirmation timer; no listener fires afterwards
    - a terminal provider error is reported once via on_error and stops
      the session
    - arrival does NOT stop the session; the rendering layer keeps
      receiving updates until it calls stop()

Example:
    session = await start_navigation_session(
        target,
        primary=indoor_adapter,
        fallback=gps_adapter,
        on_vector_update=render,
        on_arrived=lambda: orders.mark_delivered(order_id),
    )
    ...
    session.stop()
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from guided_delivery.config import NavigationConfig, PositioningConfig
from guided_delivery.models.navigation import ArrivalState, NavigationUpdate
from guided_delivery.models.position import PositionSample, TargetPoint
from guided_delivery.navigation.arrival import ArrivalStateMachine, Scheduler
from guided_delivery.navigation.formatting import describe_guidance
from guided_delivery.navigation.indicator import IndicatorTransformCalculator
from guided_delivery.navigation.vector import NavigationVectorCalculator
from guided_delivery.positioning.floors import FloorEstimator
from guided_delivery.positioning.providers import PositionProvider
from guided_delivery.positioning.stream import PositionStream


logger = logging.getLogger(__name__)


UpdateListener = Callable[[NavigationUpdate], None]
StateListener = Callable[[ArrivalState], None]
ErrorListener = Callable[[BaseException], None]
ArrivedListener = Callable[[], None]


class NavigationSession:
    """
    Guided navigation to a single target.

    Attributes:
        target: Delivery destination (immutable for the session)
        config: Navigation configuration
        stream: Fused position stream
        calculator: Navigation vector calculator
        arrival: Arrival state machine
        indicator: Indicator transform calculator
    """

    def __init__(
        self,
        target: TargetPoint,
        primary: PositionProvider,
        fallback: PositionProvider,
        config: Optional[NavigationConfig] = None,
        positioning: Optional[PositioningConfig] = None,
        floor_estimator: Optional[FloorEstimator] = None,
        clock: Optional[Callable[[], int]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        """
        Initialize a navigation session.

        Args:
            target: Delivery destination
            primary: Indoor positioning provider
            fallback: Satellite positioning provider
            config: Navigation configuration (defaults if None)
            positioning: Provider configuration (defaults if None)
            floor_estimator: Optional altitude → floor estimator for the venue
            clock: Millisecond clock for the arrival machine
            scheduler: Scheduler for the confirmation timer
        """
        self.target = target
        self.config = config or NavigationConfig()
        positioning = positioning or PositioningConfig()

        self.stream = PositionStream(
            primary=primary,
            fallback=fallback,
            init_timeout_seconds=positioning.provider_init_timeout_seconds,
            min_sample_interval_millis=positioning.min_sample_interval_millis,
            floor_estimator=floor_estimator,
            log_every_n_samples=positioning.log_every_n_samples,
        )
        self.calculator = NavigationVectorCalculator(
            floor_height_meters=self.config.floor_height_meters,
        )
        self.arrival = ArrivalStateMachine(
            arrival_threshold_meters=self.config.arrival_threshold_meters,
            confirmation_window_millis=self.config.confirmation_window_millis,
            poor_accuracy_meters=self.config.poor_accuracy_meters,
            implausible_distance_meters=self.config.implausible_distance_meters,
            clock=clock,
            scheduler=scheduler,
        )
        self.indicator = IndicatorTransformCalculator(
            min_scale=self.config.min_scale,
            max_scale=self.config.max_scale,
            near_distance_meters=self.config.near_distance_meters,
            far_distance_meters=self.config.far_distance_meters,
            aligned_tolerance_degrees=self.config.aligned_tolerance_degrees,
            max_tilt_degrees=self.config.max_tilt_degrees,
        )

        self._update_listeners: List[UpdateListener] = []
        self._state_listeners: List[StateListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._arrived_listeners: List[ArrivedListener] = []

        self._started: bool = False
        self._active: bool = False
        self._device_heading: float = 0.0
        self._latest_update: Optional[NavigationUpdate] = None
        self._in_sample: bool = False
        self._samples_processed: int = 0

        self.arrival.on_state_change(self._handle_state_change)
        self.arrival.on_arrived(self._handle_arrived)

    # -------------------------------------------------------------------------
    # Listener registration
    # -------------------------------------------------------------------------

    def on_vector_update(self, listener: UpdateListener) -> None:
        """Register a listener for per-sample NavigationUpdates."""
        self._update_listeners.append(listener)

    def on_arrival_state_change(self, listener: StateListener) -> None:
        """Register a listener for arrival phase changes."""
        self._state_listeners.append(listener)

    def on_error(self, listener: ErrorListener) -> None:
        """Register a listener for the terminal provider error."""
        self._error_listeners.append(listener)

    def on_arrived(self, listener: ArrivedListener) -> None:
        """Register a listener for the one-time arrival event."""
        self._arrived_listeners.append(listener)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def arrival_state(self) -> ArrivalState:
        return self.arrival.state

    @property
    def latest_update(self) -> Optional[NavigationUpdate]:
        """Most recent NavigationUpdate, or None before the first sample."""
        return self._latest_update

    def update_device_heading(self, heading_degrees: float) -> None:
        """
        Record the compass heading of the device.

        Used when a sample carries no heading of its own, or reports
        exactly 0, which positioning SDKs emit when they have no heading.
        """
        self._device_heading = heading_degrees % 360.0

    def get_metrics(self) -> Dict[str, Any]:
        """Get session metrics for observability."""
        return {
            "active": self._active,
            "samples_processed": self._samples_processed,
            "arrival_phase": self.arrival.state.phase.value,
            "stream": self.stream.metrics.to_dict(),
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Start receiving positions.

        Returns once a provider is running or the terminal error has been
        reported.
        """
        if self._started:
            raise RuntimeError("NavigationSession can only be started once")
        self._started = True
        self._active = True

        logger.info(
            f"Navigation session started: target=({self.target.latitude:.6f}, "
            f"{self.target.longitude:.6f}), floor={self.target.floor_level}"
        )
        await self.stream.subscribe(self._handle_sample, self._handle_error)

    def stop(self) -> None:
        """
        Stop the session.

        Synchronously stops all providers and the confirmation timer.
        Idempotent.
        """
        if not self._active:
            return
        self._active = False
        self.stream.unsubscribe()
        self.arrival.cancel()
        logger.info(
            f"Navigation session stopped: samples={self._samples_processed}, "
            f"state={self.arrival.state.phase.value}"
        )

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _handle_sample(self, sample: PositionSample) -> None:
        if not self._active:
            return

        self._samples_processed += 1
        vector = self.calculator.compute(sample, self.target)

        self._in_sample = True
        try:
            result = self.arrival.update(vector, sample=sample)
        finally:
            self._in_sample = False

        transform = self.indicator.compute(vector, self._facing(sample), result.state)
        update = NavigationUpdate(
            sample=sample,
            vector=vector,
            transform=transform,
            arrival_state=result.state,
            instruction=describe_guidance(vector, transform, result.state),
        )
        self._latest_update = update

        logger.debug(f"{vector!r} {transform!r} reason={result.reason.value}")
        self._emit(self._update_listeners, update)

    def _handle_state_change(self, state: ArrivalState) -> None:
        if not self._active:
            return
        self._emit(self._state_listeners, state)

        # Timer-driven arrival: refresh the indicator without a new sample
        if state.is_terminal and not self._in_sample and self._latest_update:
            previous = self._latest_update
            transform = self.indicator.compute(
                previous.vector, self._facing(previous.sample), state
            )
            update = NavigationUpdate(
                sample=previous.sample,
                vector=previous.vector,
                transform=transform,
                arrival_state=state,
                instruction=describe_guidance(previous.vector, transform, state),
            )
            self._latest_update = update
            self._emit(self._update_listeners, update)

    def _handle_arrived(self) -> None:
        if not self._active:
            return
        logger.info("Delivery target reached")
        self._emit(self._arrived_listeners)

    def _handle_error(self, error: BaseException) -> None:
        if not self._active:
            return
        logger.error(f"Navigation session ended by provider error: {error}")
        self._emit(self._error_listeners, error)
        self.stop()

    def _facing(self, sample: PositionSample) -> float:
        """Heading used for the indicator: the sample's, else the compass."""
        if sample.heading_degrees:
            return sample.heading_degrees
        return self._device_heading

    def _emit(self, listeners: List[Callable[..., None]], *args: Any) -> None:
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")


async def start_navigation_session(
    target: TargetPoint,
    primary: PositionProvider,
    fallback: PositionProvider,
    config: Optional[NavigationConfig] = None,
    on_vector_update: Optional[UpdateListener] = None,
    on_arrival_state_change: Optional[StateListener] = None,
    on_error: Optional[ErrorListener] = None,
    on_arrived: Optional[ArrivedListener] = None,
    **session_kwargs: Any,
) -> NavigationSession:
    """
    Create, wire and start a navigation session.

    Listeners passed here are registered before the first sample can
    arrive.

    Args:
        target: Delivery destination
        primary: Indoor positioning provider
        fallback: Satellite positioning provider
        config: Navigation configuration
        on_vector_update: Per-sample NavigationUpdate listener
        on_arrival_state_change: Arrival phase listener
        on_error: Terminal error listener
        on_arrived: One-time arrival listener
        **session_kwargs: Passed through to NavigationSession

    Returns:
        The started NavigationSession
    """
    session = NavigationSession(
        target,
        primary=primary,
        fallback=fallback,
        config=config,
        **session_kwargs,
    )
    if on_vector_update is not None:
        session.on_vector_update(on_vector_update)
    if on_arrival_state_change is not None:
        session.on_arrival_state_change(on_arrival_state_change)
    if on_error is not None:
        session.on_error(on_error)
    if on_arrived is not None:
        session.on_arrived(on_arrived)

    await session.start()
    return session
