from datetime import datetime, timedelta
import threading
import time

from precast.maintenance.exceptions import CycleCancelled


class CycleContext:
    """
    Cancellation token shared by every job of one maintenance cycle.

    `now` is read once when the cycle starts so all jobs agree on "today".
    The deadline is tracked on the monotonic clock.
    """

    def __init__(self, now: datetime, timeout: timedelta):
        self.now = now
        self.timeout = timeout
        self._deadline = time.monotonic() + timeout.total_seconds()
        self._cancelled = threading.Event()

    @property
    def today(self):
        return self.now.date()

    def remaining(self) -> float:
        return max(0.0, self._deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired

    def cancel(self):
        self._cancelled.set()

    def check(self):
        if self._cancelled.is_set():
            raise CycleCancelled("maintenance cycle was cancelled")
        if self.expired:
            raise CycleCancelled(f"maintenance cycle exceeded its {self.timeout} deadline")
