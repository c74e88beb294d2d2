"""
Reminder scheduling for running timers.

A reminder fires every `interval` seconds measured from the timer's start,
not from wall-clock boundaries. next_reminder_delay() computes the wait until
the next boundary, which is how a restored timer realigns to its persisted
start_time.

Schedulers return a ReminderHandle; cancel() is idempotent and stops all
future firings.
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

logger = logging.getLogger(__name__)


def next_reminder_delay(
    start_time: datetime, now: datetime, interval_seconds: float, minimum: float = 0.0
) -> float:
    """Seconds from *now* until the next start_time + k*interval boundary (k >= 1)."""
    if interval_seconds <= 0:
        raise ValueError(f"reminder interval must be positive, got {interval_seconds}")
    elapsed = (now - start_time).total_seconds()
    if elapsed < 0:
        remaining = interval_seconds - elapsed
    else:
        remaining = interval_seconds - (elapsed % interval_seconds)
    return max(minimum, remaining)


class ReminderHandle(Protocol):
    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> bool: ...


class ReminderScheduler(Protocol):
    def schedule(
        self, first_delay: float, interval: float, callback: Callable[[], None]
    ) -> ReminderHandle: ...


# =============================================================================
# Thread-based scheduler (synchronous hosts)
# =============================================================================


class ThreadReminder:
    """
    Repeating reminder on daemon threading.Timer instances.

    Fire times are fixed at first_fire + k*interval on the monotonic clock so
    a slow callback does not drift the schedule. The next timer is armed
    before the callback runs, so a callback still blocked on a prompt does not
    delay the following firing.
    """

    def __init__(self, first_delay: float, interval: float, callback: Callable[[], None]):
        self._interval = interval
        self._callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._timer: threading.Timer | None = None
        self._next_fire = time.monotonic() + first_delay
        self._arm()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _arm(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            delay = max(0.0, self._next_fire - time.monotonic())
            self._timer = threading.Timer(delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._next_fire += self._interval
        self._arm()
        try:
            self._callback()
        except Exception:
            logger.exception("Reminder callback failed")

    def cancel(self) -> bool:
        """Stop future firings. Returns False if already cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        return True


class ThreadingReminderScheduler:
    def schedule(
        self, first_delay: float, interval: float, callback: Callable[[], None]
    ) -> ThreadReminder:
        return ThreadReminder(first_delay, interval, callback)


# =============================================================================
# asyncio scheduler (async hosts)
# =============================================================================


class LoopReminder:
    """Repeating reminder on an event loop via call_at."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        first_delay: float,
        interval: float,
        callback: Callable[[], None],
    ):
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._next_fire = loop.time() + first_delay
        self._handle: asyncio.TimerHandle | None = loop.call_at(self._next_fire, self._fire)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._next_fire += self._interval
        self._handle = self._loop.call_at(self._next_fire, self._fire)
        try:
            self._callback()
        except Exception:
            logger.exception("Reminder callback failed")

    def cancel(self) -> bool:
        """Stop future firings. Safe to call from any thread."""
        if self._cancelled:
            return False
        self._cancelled = True
        handle, self._handle = self._handle, None
        if handle is not None:
            self._loop.call_soon_threadsafe(handle.cancel)
        return True


class AsyncioReminderScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def schedule(
        self, first_delay: float, interval: float, callback: Callable[[], None]
    ) -> LoopReminder:
        loop = self._loop or asyncio.get_running_loop()
        return LoopReminder(loop, first_delay, interval, callback)
