"""
Cancellation token threaded through every database round-trip.

A token carries an optional deadline and an explicit cancel switch. The
database handle checks it before each I/O boundary and hands the remaining
time to the driver as query timeout, so a slow statement is cancelled by
the driver itself. An explicit cancel() also runs the callbacks registered
with on_cancel(), which the database handle uses to cancel the live cursor.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, List

from mssqlpermissions.domain.errors import OperationCancelledError


class CancelToken:
    """Deadline plus cancel flag, safe to share across threads."""

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Set the flag and run every registered callback once."""
        with self._lock:
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run ``callback`` when cancel() is called, right away if it already was.

        Returns a function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False
        if not registered:
            callback()

        def unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unregister

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def query_timeout(self) -> int:
        """
        Remaining time as a pyodbc query timeout.

        pyodbc takes whole seconds and treats 0 as "no timeout", so any
        remaining fraction rounds up to at least one second.
        """
        remaining = self.remaining()
        if remaining is None:
            return 0
        return max(1, math.ceil(remaining))

    def raise_if_cancelled(self, operation: str | None = None) -> None:
        if self.cancelled:
            raise OperationCancelledError("operation cancelled", operation=operation)
        if self.expired:
            raise OperationCancelledError("operation deadline exceeded", operation=operation)

    def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``, waking early on cancel or deadline."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        self.raise_if_cancelled()
