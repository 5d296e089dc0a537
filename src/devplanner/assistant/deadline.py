"""Per-command deadline and cancellation token."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class Deadline:
    """Cooperative cancellation shared by the retry controller and gateways.

    A deadline without `timeout_seconds` never expires on its own but can still
    be cancelled, for example when the caller disconnects.
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout_seconds is None else clock() + timeout_seconds
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left, or None when there is no time limit."""

        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; return False if cancelled or expired meanwhile."""

        remaining = self.remaining()
        budget = seconds if remaining is None else min(seconds, remaining)
        if self._cancelled.wait(timeout=max(0.0, budget)):
            return False
        return not self.expired
