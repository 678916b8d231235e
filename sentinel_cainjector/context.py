"""Per-pass cancellation and deadline handling."""

import threading
import time
from typing import Optional

from .exceptions import CanceledError


class ReconcileContext:
    """
    Cancellation scope for a single reconciliation pass.

    Every store call and every retry backoff consults the context, so a pass
    stops promptly once it is cancelled or its deadline passes. The context is
    safe to cancel from another thread.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize the context.

        Args:
            timeout: Seconds until the pass deadline (None for no deadline)
        """
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._canceled = threading.Event()

    @classmethod
    def background(cls) -> "ReconcileContext":
        """Context with no deadline."""
        return cls()

    def cancel(self) -> None:
        self._canceled.set()

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def request_timeout(self) -> Optional[float]:
        """Timeout to hand to a single store request."""
        return self.remaining()

    def raise_if_canceled(self) -> None:
        if self._canceled.is_set():
            raise CanceledError("reconciliation pass canceled")
        if self.expired:
            raise CanceledError("reconciliation pass deadline exceeded")

    def sleep(self, seconds: float) -> None:
        """
        Sleep for up to ``seconds``, waking early on cancellation.

        Raises:
            CanceledError: If the context is cancelled or expires while sleeping
        """
        self.raise_if_canceled()
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._canceled.wait(seconds)
        self.raise_if_canceled()
