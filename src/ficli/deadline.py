"""Run-scoped deadline shared by model requests and tool invocations."""

from __future__ import annotations

import threading
import time

from ficli.errors import DeadlineExceededError


class Deadline:
    """A monotonic expiry plus a cancellation flag.

    ``None`` timeout means the run has no overall time limit but can still
    be cancelled.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._expires_at = None if timeout_seconds is None else time.monotonic() + timeout_seconds
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        if self.cancelled:
            raise DeadlineExceededError("run cancelled")
        if self.expired:
            raise DeadlineExceededError("run deadline exceeded")

    def bound(self, seconds: float | None) -> float | None:
        """Return the smaller of ``seconds`` and the remaining run budget."""
        remaining = self.remaining()
        if remaining is None:
            return seconds
        if seconds is None or seconds <= 0:
            return remaining
        return min(seconds, remaining)
