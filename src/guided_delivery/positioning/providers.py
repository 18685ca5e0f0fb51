"""
Position Providers
==================

Adapter interface for the native positioning bridges, plus a scripted
provider for tests and simulation.

The core treats providers as black boxes. Real adapters wrap an indoor
positioning SDK (venue-mapped, floor-aware) or the platform's satellite
positioning. Both yield raw fixes in the RawFix shape.

Components:
    - PositionProvider: Protocol every adapter implements
    - ScriptedPositionProvider: Deterministic replay of a fixed fix list

Adapter Contract:
    - get_once() returns a single fix, raises on failure
    - watch(on_fix, on_error) starts continuous updates and returns a
      synchronous stop handle; it raises if the provider cannot start
      (no credentials, no venue mapping data, permission denied)
    - after a successful start, runtime failures are reported through
      on_error rather than raised
"""

import asyncio
import logging
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence, Union

from guided_delivery.models.position import RawFix


logger = logging.getLogger(__name__)


FixLike = Union[RawFix, Mapping[str, Any]]
FixCallback = Callable[[FixLike], None]
ErrorCallback = Callable[[BaseException], None]
StopHandle = Callable[[], None]


class PositionProvider(Protocol):
    """
    Protocol for position provider adapters.

    Implemented by the indoor positioning adapter, the satellite
    positioning adapter, and ScriptedPositionProvider.
    """

    name: str

    async def get_once(self) -> FixLike:
        """
        Read a single fix.

        Returns:
            Raw fix (RawFix or mapping in the RawFix shape)
        """
        ...

    async def watch(self, on_fix: FixCallback, on_error: ErrorCallback) -> StopHandle:
        """
        Start continuous updates.

        Args:
            on_fix: Called with each raw fix
            on_error: Called once if the provider fails after starting

        Returns:
            Synchronous handle that stops the underlying sensor subscription
        """
        ...


class ProviderLost(RuntimeError):
    """Reported by ScriptedPositionProvider when its script says to fail."""


class ScriptedPositionProvider:
    """
    Deterministic provider replaying a fixed list of fixes.

    Useful for tests and the simulation script. Tracks how many watches
    are active and how many times it was stopped, so callers can verify
    that sensor subscriptions never leak.

    Attributes:
        name: Provider name used in logs and errors
        fixes: Fixes to replay, in order
        interval_seconds: Delay between consecutive fixes
        start_delay_seconds: Simulated initialization time
        fail_on_start: Raised from get_once()/watch() when set
        fail_after: Report ProviderLost after this many fixes when set

    Example:
        provider = ScriptedPositionProvider(
            name="indoor",
            fixes=[{"latitude": 0.0, "longitude": 0.0, "accuracy": 1.0,
                    "timestamp": 0}],
        )
        stop = await provider.watch(print, print)
    """

    def __init__(
        self,
        fixes: Sequence[FixLike],
        name: str = "scripted",
        interval_seconds: float = 0.0,
        start_delay_seconds: float = 0.0,
        fail_on_start: Optional[BaseException] = None,
        fail_after: Optional[int] = None,
    ) -> None:
        self.name = name
        self.fixes: List[FixLike] = list(fixes)
        self.interval_seconds = interval_seconds
        self.start_delay_seconds = start_delay_seconds
        self.fail_on_start = fail_on_start
        self.fail_after = fail_after

        self.active_watches: int = 0
        self.watch_calls: int = 0
        self.stop_calls: int = 0

    async def get_once(self) -> FixLike:
        """Return the first scripted fix."""
        await self._initialize()
        if not self.fixes:
            raise ProviderLost(f"{self.name} has no fix available")
        return self.fixes[0]

    async def watch(self, on_fix: FixCallback, on_error: ErrorCallback) -> StopHandle:
        """Start replaying fixes on the running event loop."""
        self.watch_calls += 1
        await self._initialize()

        task = asyncio.get_running_loop().create_task(self._replay(on_fix, on_error))
        self.active_watches += 1
        logger.info(f"{self.name}: watch started ({len(self.fixes)} scripted fixes)")

        stopped = False

        def stop() -> None:
            nonlocal stopped
            if stopped:
                return
            stopped = True
            task.cancel()
            self.active_watches -= 1
            self.stop_calls += 1
            logger.info(f"{self.name}: watch stopped")

        return stop

    async def _initialize(self) -> None:
        if self.start_delay_seconds > 0:
            await asyncio.sleep(self.start_delay_seconds)
        if self.fail_on_start is not None:
            raise self.fail_on_start

    async def _replay(self, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        for index, fix in enumerate(self.fixes):
            if self.fail_after is not None and index >= self.fail_after:
                on_error(ProviderLost(f"{self.name} lost position after {index} fixes"))
                return
            on_fix(fix)
            await asyncio.sleep(self.interval_seconds)

        if self.fail_after is not None and self.fail_after >= len(self.fixes):
            on_error(ProviderLost(f"{self.name} lost position after {len(self.fixes)} fixes"))
