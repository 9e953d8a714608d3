from contextlib import contextmanager
from datetime import datetime, time, timedelta
from typing import Any, Callable, Optional
import logging
import threading

logger = logging.getLogger(__name__)


class CycleGuard:
    """Process-wide at-most-one-cycle flag"""

    def __init__(self):
        self._lock = threading.Lock()

    def try_enter(self) -> bool:
        return self._lock.acquire(blocking=False)

    def leave(self):
        self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def entered(self):
        """Yields True when the caller owns the cycle; releases on exit."""
        acquired = self.try_enter()
        try:
            yield acquired
        finally:
            if acquired:
                self.leave()


class DailyScheduler:
    """
    Fires `trigger` once a day at `run_at` local time, each time in a fresh thread.

    Triggers are never queued: overlap with a still-running cycle is left to the
    trigger's own guard.
    """

    def __init__(self, run_at: time, trigger: Callable[[], Any],
                 clock: Callable[[], datetime] = datetime.now,
                 on_abort: Optional[Callable[[], Any]] = None,
                 poll_interval: float = 30.0):
        self.run_at = run_at
        self.trigger = trigger
        self.clock = clock
        self.on_abort = on_abort
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_thread: Optional[threading.Thread] = None

    def next_fire(self, now: Optional[datetime] = None) -> datetime:
        now = now if now is not None else self.clock()
        candidate = datetime.combine(now.date(), self.run_at)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="maintenance-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Maintenance scheduler started, next run at {self.next_fire()}")

    def _loop(self):
        while not self._stop.is_set():
            fire_at = self.next_fire()
            # Sleep in short slices so wall-clock changes are picked up
            while not self._stop.is_set():
                remaining = (fire_at - self.clock()).total_seconds()
                if remaining <= 0:
                    break
                self._stop.wait(min(remaining, self.poll_interval))
            if self._stop.is_set():
                break
            self._fire(fire_at)

    def _fire(self, fire_at: datetime):
        logger.info(f"Maintenance cycle triggered for {fire_at}")
        thread = threading.Thread(target=self._run_trigger, name=f"maintenance-cycle-{fire_at:%Y%m%d}", daemon=True)
        self._cycle_thread = thread
        thread.start()

    def _run_trigger(self):
        try:
            self.trigger()
        except Exception as e:
            logger.error(f"Maintenance cycle trigger failed: {e}", exc_info=True)

    def stop(self, grace: timedelta = timedelta(minutes=2), abort_wait: float = 10.0):
        """
        Stop firing, let an in-flight cycle finish within `grace`, then abort it.
        """
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.poll_interval + 1)
        cycle = self._cycle_thread
        if cycle is not None and cycle.is_alive():
            logger.info(f"Waiting up to {grace} for the running maintenance cycle")
            cycle.join(timeout=grace.total_seconds())
            if cycle.is_alive():
                logger.warning("Maintenance cycle still running after shutdown grace, aborting")
                if self.on_abort is not None:
                    self.on_abort()
                cycle.join(timeout=abort_wait)
        logger.info("Maintenance scheduler stopped")
