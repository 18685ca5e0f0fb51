"""
Position Stream
===============

Normalizes the primary (indoor) and fallback (satellite) providers into a
single stream of PositionSample values.

This module provides the PositionStream class which:
    - Starts the primary provider, falling back to the satellite provider
      when initialization fails or times out
    - Hops to the fallback once if the primary fails mid-session
    - Tags every sample with its source
    - Validates raw fixes and silently drops invalid ones
    - Bounds the emission rate
    - Exposes metrics for health monitoring

Design Rules:
    - At most one underlying provider subscription is active at a time
    - Fallback is sticky: once engaged, the primary is never retried
    - unsubscribe() is synchronous, idempotent and complete
    - No callback fires after unsubscribe()
    - No retry beyond the single primary → fallback hop
    - A terminal error reaches on_error exactly once
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from guided_delivery.errors import InvalidSample, ProviderUnavailable
from guided_delivery.models.position import PositionSample, PositionSource, RawFix
from guided_delivery.positioning.floors import FloorEstimator
from guided_delivery.positioning.providers import (
    FixLike,
    PositionProvider,
    StopHandle,
)


logger = logging.getLogger(__name__)


SampleCallback = Callable[[PositionSample], None]
ErrorCallback = Callable[[BaseException], None]


class PositionStreamMetrics:
    """Metrics for PositionStream observability."""

    __slots__ = (
        "samples_emitted",
        "invalid_dropped",
        "throttled",
        "fallback_hops",
        "validation_warnings",
        "active_source",
        "last_captured_at_millis",
    )

    def __init__(self) -> None:
        self.samples_emitted: int = 0
        self.invalid_dropped: int = 0
        self.throttled: int = 0
        self.fallback_hops: int = 0
        self.validation_warnings: int = 0
        self.active_source: Optional[PositionSource] = None
        self.last_captured_at_millis: int = -1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "samples_emitted": self.samples_emitted,
            "invalid_dropped": self.invalid_dropped,
            "throttled": self.throttled,
            "fallback_hops": self.fallback_hops,
            "validation_warnings": self.validation_warnings,
            "active_source": self.active_source.value if self.active_source else None,
            "last_captured_at_millis": self.last_captured_at_millis,
        }


class PositionStream:
    """
    Single logical stream of position samples.

    Attributes:
        primary: Indoor positioning provider (tried first)
        fallback: Satellite positioning provider
        init_timeout_seconds: Time allowed for a provider to start
        min_sample_interval_millis: Minimum spacing between emitted samples
        floor_estimator: Fills floor_level from altitude when set
        metrics: Operational metrics

    Example:
        stream = PositionStream(primary=indoor, fallback=satellite)

        unsubscribe = await stream.subscribe(on_sample, on_error)
        ...
        unsubscribe()
    """

    def __init__(
        self,
        primary: PositionProvider,
        fallback: PositionProvider,
        init_timeout_seconds: float = 10.0,
        min_sample_interval_millis: int = 100,
        floor_estimator: Optional[FloorEstimator] = None,
        log_every_n_samples: int = 10,
    ) -> None:
        """
        Initialize position stream.

        Args:
            primary: Indoor positioning provider
            fallback: Satellite positioning provider
            init_timeout_seconds: Finite timeout for provider initialization
            min_sample_interval_millis: Rate bound (0 disables throttling)
            floor_estimator: Optional altitude → floor estimator
            log_every_n_samples: Log stream status every N samples
        """
        if init_timeout_seconds <= 0:
            raise ValueError("init_timeout_seconds must be positive")

        self.primary = primary
        self.fallback = fallback
        self.init_timeout_seconds = init_timeout_seconds
        self.min_sample_interval_millis = min_sample_interval_millis
        self.floor_estimator = floor_estimator
        self.log_every_n_samples = log_every_n_samples

        # Subscription state
        self._active: bool = False
        self._generation: int = 0
        self._stop_handle: Optional[StopHandle] = None
        self._hop_task: Optional[asyncio.Task] = None
        self._fallback_engaged: bool = False
        self._error_reported: bool = False
        self._failures: List[Tuple[str, BaseException]] = []
        self._on_sample: Optional[SampleCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._last_emitted_millis: Optional[int] = None

        self.metrics = PositionStreamMetrics()

    @property
    def active(self) -> bool:
        """Whether a subscription is live."""
        return self._active

    @property
    def active_source(self) -> Optional[PositionSource]:
        """Source of the currently running provider, if any."""
        return self.metrics.active_source

    @property
    def fallback_engaged(self) -> bool:
        return self._fallback_engaged

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def subscribe(
        self,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
    ) -> Callable[[], None]:
        """
        Subscribe to continuous position updates.

        Tries the primary provider first and transparently falls back to
        the satellite provider. If neither starts, on_error receives a
        ProviderUnavailable once.

        Args:
            on_sample: Called with each accepted sample
            on_error: Called once with a terminal error

        Returns:
            Synchronous unsubscribe function
        """
        if self._active:
            raise RuntimeError("PositionStream already has an active subscription")

        self._active = True
        self._error_reported = False
        self._failures = []
        self._on_sample = on_sample
        self._on_error = on_error
        self._last_emitted_millis = None

        if not self._fallback_engaged:
            try:
                await self._start_provider(self.primary, PositionSource.PRIMARY_INDOOR)
                return self.unsubscribe
            except Exception as e:
                self._failures.append((self.primary.name, e))
                if not self._active:
                    return self.unsubscribe
                logger.warning(
                    f"Primary provider '{self.primary.name}' failed to start "
                    f"({type(e).__name__}: {e}), falling back to "
                    f"'{self.fallback.name}'"
                )
                self._fallback_engaged = True
                self.metrics.fallback_hops += 1

        await self._start_fallback()
        return self.unsubscribe

    def unsubscribe(self) -> None:
        """
        Stop the active provider and cancel any pending fallback hop.

        Synchronous and idempotent. No callback fires afterwards.
        """
        was_active = self._active
        self._active = False
        self._generation += 1
        self._stop_active_provider()

        if self._hop_task is not None and not self._hop_task.done():
            self._hop_task.cancel()
        self._hop_task = None

        self._on_sample = None
        self._on_error = None

        if was_active:
            logger.info(
                f"PositionStream unsubscribed "
                f"(emitted={self.metrics.samples_emitted}, "
                f"dropped={self.metrics.invalid_dropped})"
            )

    async def get_snapshot(self) -> PositionSample:
        """
        Read a single sample with the same fallback policy as subscribe.

        Returns:
            Validated PositionSample

        Raises:
            ProviderUnavailable: If neither provider yields a valid fix
        """
        attempts = [(self.fallback, PositionSource.FALLBACK_SATELLITE)]
        if not self._fallback_engaged:
            attempts.insert(0, (self.primary, PositionSource.PRIMARY_INDOOR))

        failures: List[Tuple[str, BaseException]] = []
        for provider, source in attempts:
            try:
                raw = await asyncio.wait_for(
                    provider.get_once(),
                    timeout=self.init_timeout_seconds,
                )
                return self._to_sample(raw, source)
            except Exception as e:
                failures.append((provider.name, e))
                logger.warning(
                    f"Snapshot from '{provider.name}' failed: "
                    f"{type(e).__name__}: {e}"
                )

        raise ProviderUnavailable(failures)

    # -------------------------------------------------------------------------
    # Provider lifecycle
    # -------------------------------------------------------------------------

    async def _start_provider(
        self,
        provider: PositionProvider,
        source: PositionSource,
    ) -> None:
        """Start a provider's watch with a finite timeout."""
        token = self._generation
        stop = await asyncio.wait_for(
            provider.watch(
                self._make_fix_handler(source, token),
                self._make_error_handler(source, token),
            ),
            timeout=self.init_timeout_seconds,
        )

        if not self._active or token != self._generation:
            # Unsubscribed or hopped while the provider was starting
            stop()
            return

        self._stop_handle = stop
        self.metrics.active_source = source
        logger.info(f"Position provider '{provider.name}' started ({source.value})")

    async def _start_fallback(self) -> None:
        try:
            await self._start_provider(self.fallback, PositionSource.FALLBACK_SATELLITE)
        except Exception as e:
            self._failures.append((self.fallback.name, e))
            self._report_terminal(ProviderUnavailable(self._failures))

    def _stop_active_provider(self) -> None:
        stop = self._stop_handle
        self._stop_handle = None
        self.metrics.active_source = None
        if stop is not None:
            try:
                stop()
            except Exception as e:
                logger.error(f"Failed to stop position provider: {e}")

    def _hop_to_fallback(self, error: BaseException) -> None:
        """Replace a primary that failed mid-session with the fallback."""
        self._failures.append((self.primary.name, error))
        logger.warning(
            f"Primary provider '{self.primary.name}' lost "
            f"({type(error).__name__}: {error}), switching to "
            f"'{self.fallback.name}'"
        )
        self._generation += 1
        self._stop_active_provider()
        self._fallback_engaged = True
        self.metrics.fallback_hops += 1
        self._hop_task = asyncio.get_running_loop().create_task(self._start_fallback())

    def _report_terminal(self, error: BaseException) -> None:
        """End the subscription and surface error exactly once."""
        if self._error_reported or not self._active:
            return
        self._error_reported = True

        on_error = self._on_error
        self._active = False
        self._generation += 1
        self._stop_active_provider()
        self._on_sample = None
        self._on_error = None

        logger.error(f"PositionStream terminated: {error}")
        if on_error is not None:
            try:
                on_error(error)
            except Exception as e:
                logger.error(f"Error callback failed: {e}")

    # -------------------------------------------------------------------------
    # Callbacks from providers
    # -------------------------------------------------------------------------

    def _make_fix_handler(self, source: PositionSource, token: int) -> Callable[[FixLike], None]:
        def handle_fix(raw: FixLike) -> None:
            if not self._active or token != self._generation:
                return
            self._handle_fix(raw, source)

        return handle_fix

    def _make_error_handler(
        self,
        source: PositionSource,
        token: int,
    ) -> Callable[[BaseException], None]:
        def handle_error(error: BaseException) -> None:
            if not self._active or token != self._generation:
                return
            if source == PositionSource.PRIMARY_INDOOR:
                self._hop_to_fallback(error)
            else:
                self._failures.append((self.fallback.name, error))
                self._report_terminal(ProviderUnavailable(self._failures))

        return handle_error

    def _handle_fix(self, raw: FixLike, source: PositionSource) -> None:
        """Validate, throttle and emit one raw fix."""
        try:
            sample = self._to_sample(raw, source)
        except (ValidationError, InvalidSample) as e:
            self.metrics.invalid_dropped += 1
            logger.debug(f"Dropped invalid fix from {source.value}: {e}")
            return

        captured = sample.captured_at_millis
        if self._last_emitted_millis is not None:
            delta = captured - self._last_emitted_millis
            if delta < 0:
                self.metrics.validation_warnings += 1
                logger.warning(
                    f"Sample timestamp went backwards: got {captured}, "
                    f"previous was {self._last_emitted_millis}"
                )
            elif delta < self.min_sample_interval_millis:
                self.metrics.throttled += 1
                logger.debug(f"Throttled sample ({delta}ms after previous)")
                return

        self._last_emitted_millis = captured
        self.metrics.samples_emitted += 1
        self.metrics.last_captured_at_millis = captured

        if self.metrics.samples_emitted % self.log_every_n_samples == 0:
            logger.info(
                f"PositionStream [sample {self.metrics.samples_emitted}]: "
                f"{sample!r}"
            )

        on_sample = self._on_sample
        if on_sample is not None:
            try:
                on_sample(sample)
            except Exception as e:
                logger.error(f"Sample callback failed: {e}")

    def _to_sample(self, raw: FixLike, source: PositionSource) -> PositionSample:
        fix = RawFix.model_validate(raw)

        estimated_floor: Optional[int] = None
        if (
            fix.floor is None
            and fix.altitude is not None
            and self.floor_estimator is not None
        ):
            estimated_floor = self.floor_estimator.estimate(fix.altitude)

        return PositionSample.from_fix(fix, source, floor_level=estimated_floor)
