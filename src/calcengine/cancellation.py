"""Cooperative cancellation for long-running kernel functions.

A task cannot be interrupted from the outside while a kernel function is
running in a worker thread. Instead the caller flips a CancelToken and the
kernel polls it at chunk boundaries.
"""

import threading
import time

from calcengine.exceptions import TaskCancelledError


class CancelToken:
    """Thread-safe cancellation flag with an optional deadline.

    Args:
        timeout: Seconds from construction after which the token counts as
            cancelled. None = no deadline.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason = "Task was cancelled"

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Idempotent."""
        if reason is not None and not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("Task timed out")
            return True
        return False

    def raise_if_cancelled(self) -> None:
        """Raise TaskCancelledError if cancellation was requested or the deadline passed."""
        if self.cancelled:
            raise TaskCancelledError(self._reason)


def check(token: CancelToken | None) -> None:
    """Poll an optional token."""
    if token is not None:
        token.raise_if_cancelled()
