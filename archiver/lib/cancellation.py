"""Cancellation token passed through a pipeline run.

The scheduler owns one token for the life of the process. Stages check it
at their I/O points so a stop request interrupts long directory walks and
uploads without killing the process mid-write.
"""

import threading
from typing import Optional

from archiver.lib.errors import RunCancelled


class CancellationToken:
    """Thread-safe one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "stop requested") -> None:
        """Request cancellation. Later calls keep the first reason."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise RunCancelled if cancellation was requested."""
        if self._event.is_set():
            raise RunCancelled(self.reason or "cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout expires.

        Returns:
            True if the token was cancelled.
        """
        return self._event.wait(timeout)
