from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from pageinsight.exceptions import DeadlineExceeded, RequestCancelled


class Deadline:
    """Ambient deadline and cancellation signal for one analysis request.

    Cancellation is cooperative: the stop event can be set from any thread,
    and every stage checks `done()` (or calls `check()`) before blocking on
    network I/O. Timeouts handed to the HTTP layer are clipped with
    `clip()` so no single call outlives the deadline.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        *,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self.stop_event = stop_event if stop_event is not None else threading.Event()

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def child(self, timeout: float) -> "Deadline":
        """A deadline sharing this stop signal that expires no later than this one."""
        sub = Deadline(timeout, stop_event=self.stop_event, clock=self._clock)
        if self._expires_at is not None and self._expires_at < sub._expires_at:
            sub._expires_at = self._expires_at
        return sub

    def cancel(self) -> None:
        self.stop_event.set()

    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def done(self) -> bool:
        return self.cancelled() or self.expired()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when there is no expiry."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self) -> None:
        # Expiry wins over cancellation so callers report a timeout.
        if self.expired():
            raise DeadlineExceeded()
        if self.cancelled():
            raise RequestCancelled()

    def clip(self, timeout: float) -> float:
        """Return `timeout` bounded by the time remaining; raises once done."""
        self.check()
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)
