import time
from threading import Event
from typing import Optional

from auvio_podcast.errors import DeadlineExceededError


class Deadline:
    """Overall time budget of one orchestration, shared by every call it makes"""

    def __init__(self, seconds: Optional[float] = None):
        self.seconds = seconds
        self._expires_at = None if seconds is None else time.monotonic() + seconds
        self._cancelled = Event()

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check(self, context: str = ""):
        """Raise DeadlineExceededError if the budget is spent or the session was cancelled"""
        if self.cancelled:
            raise DeadlineExceededError(f"{context} - pipeline cancelled".strip(" -"))
        if self.expired():
            raise DeadlineExceededError(f"{context} - deadline of {self.seconds}s exceeded".strip(" -"))

    def timeout(self, default: float) -> float:
        """Per-request timeout: the default, capped by what is left of the budget"""
        remaining = self.remaining()
        if remaining is None:
            return default
        return min(default, remaining)
