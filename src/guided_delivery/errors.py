"""
Error Taxonomy
==============

Exceptions raised by the navigation core.

Propagation Rules:
    - ProviderUnavailable: surfaced once via the session's error callback,
      ends the session. Also raised directly by one-shot reads.
    - InvalidSample: raised on model construction, caught by the
      PositionStream and dropped silently. Never reaches the caller.

Operations attempted after arrival are not errors. They are reported
with ArrivalReason.SESSION_ALREADY_TERMINAL.
"""

from typing import List, Tuple


class NavigationError(Exception):
    """Base class for all navigation core errors."""


class InvalidSample(NavigationError, ValueError):
    """A position fix with non-finite or out-of-range values."""


class ProviderUnavailable(NavigationError):
    """
    Neither position provider could supply data.

    Attributes:
        failures: (provider_name, error) pairs, in the order attempted
    """

    def __init__(self, failures: List[Tuple[str, BaseException]]) -> None:
        self.failures = list(failures)
        detail = "; ".join(
            f"{name}: {type(err).__name__}: {err}" for name, err in self.failures
        )
        super().__init__(f"No position provider available ({detail})")
