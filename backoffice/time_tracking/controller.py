"""
Timer Controller - one operator's billable-time timer.

States:
    IDLE -> RUNNING -> {PAUSED <-> RUNNING} -> (stop) -> IDLE

Invariants:
- At most one active TimeEntry per operator. start() checks the repository
  first; the repository's uniqueness rule catches racing sessions.
- Local state changes only after the repository confirms the write.
- While a timer is active exactly one reminder handle is live. It is released
  on stop() and on close(), whichever comes first.
- At most one "still running?" prompt is outstanding; firings that land while
  one is open are dropped.

Billing follows wall-clock time: paused intervals are not subtracted from
duration_hours and elapsed() keeps counting while paused.
"""

import dataclasses
import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from enum import StrEnum

from backoffice import config
from backoffice.observability import OperationContext, generate_correlation_id
from backoffice.timeutil import utc_now

from .confirmation import ConfirmationPort, PromptContext, resolve_answer
from .entries import TimeEntry, hours_between
from .errors import InvalidTransition, PersistenceError, StartConflict, TimerError
from .reminders import (
    ReminderHandle,
    ReminderScheduler,
    ThreadingReminderScheduler,
    next_reminder_delay,
)
from .repository import DuplicateActiveTimer, RepositoryError, TimeEntryRepository

logger = logging.getLogger(__name__)


class TimerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class TimerController:
    """
    Owns the active timer for one operator session.

    Construct one per operator session and close() it (or use it as a
    context manager) when the session ends. Closing releases the reminder but
    leaves a running entry active in storage so the next session restores it.

    Reminder prompts log under *session_id* (generated when not given).
    """

    def __init__(
        self,
        operator_id: str,
        repository: TimeEntryRepository,
        confirmation: ConfirmationPort,
        *,
        scheduler: ReminderScheduler | None = None,
        clock: Callable[[], datetime] = utc_now,
        client_name_lookup: Callable[[str], str | None] | None = None,
        reminder_interval: timedelta | None = None,
        min_reminder_delay: float | None = None,
        duration_places: int | None = None,
        restore: bool = True,
        session_id: str | None = None,
    ):
        self.operator_id = operator_id
        self.repository = repository
        self.confirmation = confirmation
        self.scheduler = scheduler or ThreadingReminderScheduler()
        self.clock = clock
        self.client_name_lookup = client_name_lookup
        # Correlation id for logs from reminder threads, which run outside the caller's context
        self.session_id = session_id or generate_correlation_id(f"timer-{operator_id}")

        settings = config.timekeeping_settings()
        self.reminder_interval = reminder_interval or timedelta(
            minutes=settings["reminder_interval_minutes"]
        )
        self.min_reminder_delay = (
            settings["min_reminder_delay_seconds"]
            if min_reminder_delay is None
            else min_reminder_delay
        )
        self.duration_places = (
            settings["duration_decimal_places"] if duration_places is None else duration_places
        )

        self._lock = threading.RLock()
        self._state = TimerState.IDLE
        self._entry: TimeEntry | None = None
        self._reminder: ReminderHandle | None = None
        self._prompt_outstanding = False
        self._prompt_count = 0
        self._closed = False
        self.last_reminder_error: BaseException | None = None

        if restore:
            self.restore()

    # ==================== Introspection ====================

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def active_entry(self) -> TimeEntry | None:
        return self._entry

    @property
    def is_paused(self) -> bool:
        return self._state == TimerState.PAUSED

    @property
    def reminder_armed(self) -> bool:
        return self._reminder is not None

    def elapsed(self, now: datetime | None = None) -> timedelta:
        """Live readout. Keeps counting while paused; zero when idle."""
        entry = self._entry
        if entry is None:
            return timedelta(0)
        return (now or self.clock()) - entry.start_time

    # ==================== Lifecycle ====================

    def restore(self) -> TimeEntry | None:
        """
        Pick up an entry left active by an earlier session.

        Raises:
            PersistenceError: the repository could not be read
        """
        with self._lock:
            try:
                entry = self.repository.find_active(self.operator_id)
            except RepositoryError as exc:
                logger.error("Timer restore failed for %s: %s", self.operator_id, exc)
                raise PersistenceError(f"Could not load active timer: {exc}") from exc

            self._cancel_reminder()
            self._entry = entry
            if entry is None:
                self._state = TimerState.IDLE
                return None

            self._state = TimerState.PAUSED if entry.is_paused else TimerState.RUNNING
            self._arm_reminder()
            logger.info(
                "Restored %s timer %s for %s",
                self._state,
                entry.id,
                self.operator_id,
                extra={"operator_id": self.operator_id, "entry_id": entry.id},
            )
            return entry

    def start(
        self,
        client_id: str,
        description: str = "",
        *,
        project_id: str | None = None,
        hourly_rate: Decimal | None = None,
        is_billable: bool = True,
    ) -> TimeEntry:
        """
        Start a timer for this operator against *client_id*.

        Raises:
            StartConflict: the operator already has an active timer
            PersistenceError: the repository failed
            InvalidTransition: the controller has been closed
        """
        if not client_id:
            raise ValueError("client_id is required to start a timer")

        with self._lock:
            self._ensure_open("start")
            if self._entry is not None:
                raise StartConflict(self.operator_id, self._entry.id)

            try:
                existing = self.repository.find_active(self.operator_id)
            except RepositoryError as exc:
                raise PersistenceError(f"Could not check for an active timer: {exc}") from exc
            if existing is not None:
                raise StartConflict(self.operator_id, existing.id)

            now = self.clock()
            if hourly_rate is None and config.DEFAULT_HOURLY_RATE:
                hourly_rate = Decimal(config.DEFAULT_HOURLY_RATE)
            entry = TimeEntry(
                id=str(uuid.uuid4()),
                operator_id=self.operator_id,
                client_id=client_id,
                description=description,
                start_time=now,
                entry_date=now.date(),
                project_id=project_id,
                hourly_rate=hourly_rate,
                is_billable=is_billable,
            )

            try:
                self.repository.insert(entry)
            except DuplicateActiveTimer as exc:
                raise StartConflict(self.operator_id) from exc
            except RepositoryError as exc:
                logger.error("Timer start failed for %s: %s", self.operator_id, exc)
                raise PersistenceError(f"Could not start timer: {exc}") from exc

            self._entry = entry
            self._state = TimerState.RUNNING
            self._prompt_count = 0
            self._arm_reminder()

        logger.info(
            "Timer %s started for %s on client %s",
            entry.id,
            self.operator_id,
            client_id,
            extra={"operator_id": self.operator_id, "entry_id": entry.id},
        )
        return entry

    def pause(self) -> TimeEntry:
        with self._lock:
            self._ensure_open("pause")
            if self._state != TimerState.RUNNING:
                raise InvalidTransition("pause", self._state)
            entry = self._write({"is_paused": True, "paused_at": self.clock()})
            self._state = TimerState.PAUSED
        logger.info("Timer %s paused", entry.id, extra={"operator_id": self.operator_id})
        return entry

    def resume(self) -> TimeEntry:
        with self._lock:
            self._ensure_open("resume")
            if self._state != TimerState.PAUSED:
                raise InvalidTransition("resume", self._state)
            entry = self._write({"is_paused": False, "resumed_at": self.clock()})
            self._state = TimerState.RUNNING
        logger.info("Timer %s resumed", entry.id, extra={"operator_id": self.operator_id})
        return entry

    def stop(self) -> TimeEntry | None:
        """
        Finalize the active entry. Returns it, or None when nothing was running.

        Raises:
            PersistenceError: the repository failed; the timer keeps running
        """
        with self._lock:
            entry = self._entry
            if entry is None or self._state == TimerState.IDLE:
                return None

            now = self.clock()
            finished = self._write(
                {
                    "end_time": now,
                    "active": False,
                    "duration_hours": hours_between(entry.start_time, now, self.duration_places),
                }
            )
            self._cancel_reminder()
            self._entry = None
            self._state = TimerState.IDLE
            self._prompt_count = 0

        logger.info(
            "Timer %s stopped after %sh",
            finished.id,
            finished.duration_hours,
            extra={"operator_id": self.operator_id, "entry_id": finished.id},
        )
        return finished

    def close(self) -> None:
        """Release the reminder. The entry itself stays as stored."""
        with self._lock:
            self._cancel_reminder()
            self._closed = True

    def __enter__(self) -> "TimerController":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ==================== Internals ====================

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise InvalidTransition(operation, "closed")

    def _write(self, fields: dict) -> TimeEntry:
        """Persist *fields* on the active entry, then mirror them locally."""
        entry = self._entry
        try:
            updated = self.repository.update(entry.id, fields)
        except RepositoryError as exc:
            logger.error("Timer %s write failed: %s", entry.id, exc)
            raise PersistenceError(f"Could not update timer {entry.id}: {exc}") from exc
        if not updated:
            raise PersistenceError(f"Timer {entry.id} no longer exists in storage")
        self._entry = dataclasses.replace(entry, **fields)
        return self._entry

    def _arm_reminder(self) -> None:
        self._cancel_reminder()
        if self._closed or self._entry is None:
            return
        interval = self.reminder_interval.total_seconds()
        delay = next_reminder_delay(
            self._entry.start_time, self.clock(), interval, self.min_reminder_delay
        )
        self._reminder = self.scheduler.schedule(delay, interval, self._on_reminder)

    def _cancel_reminder(self) -> None:
        handle, self._reminder = self._reminder, None
        if handle is not None:
            handle.cancel()

    def _on_reminder(self) -> None:
        """Scheduled callback: ask whether the running timer should continue."""
        with OperationContext(correlation_id=self.session_id):
            self._prompt()

    def _prompt(self) -> None:
        with self._lock:
            entry = self._entry
            if entry is None or self._state != TimerState.RUNNING:
                logger.debug("Reminder skipped: timer is %s", self._state)
                return
            if self._prompt_outstanding:
                logger.debug("Reminder suppressed: a prompt is already open for %s", entry.id)
                return
            self._prompt_outstanding = True
            self._prompt_count += 1
            now = self.clock()
            context = PromptContext(
                entry_id=entry.id,
                operator_id=self.operator_id,
                client_id=entry.client_id,
                description=entry.description,
                started_at=entry.start_time,
                elapsed=now - entry.start_time,
                prompt_number=self._prompt_count,
                client_name=self._client_name(entry.client_id),
            )

        try:
            result = self.confirmation.ask(context)
        except Exception as exc:
            self._finish_prompt(entry.id, None, exc)
            return
        resolve_answer(result, lambda answer, error: self._finish_prompt(entry.id, answer, error))

    def _finish_prompt(
        self, entry_id: str, answer: bool | None, error: BaseException | None
    ) -> None:
        # Async answers arrive on whatever thread or loop resolved them
        with OperationContext(correlation_id=self.session_id):
            self._settle_prompt(entry_id, answer, error)

    def _settle_prompt(
        self, entry_id: str, answer: bool | None, error: BaseException | None
    ) -> None:
        try:
            if error is not None:
                self.last_reminder_error = error
                logger.error(
                    "Reminder prompt for %s failed: %s",
                    entry_id,
                    error,
                    exc_info=(type(error), error, error.__traceback__),
                )
                return
            if answer:
                return
            with self._lock:
                current = self._entry
                if current is None or current.id != entry_id:
                    logger.debug("Stop answer for %s ignored: timer changed", entry_id)
                    return
                try:
                    self.stop()
                except TimerError as exc:
                    self.last_reminder_error = exc
                    logger.error("Auto-stop of %s after reminder failed: %s", entry_id, exc)
                else:
                    logger.info("Timer %s stopped from reminder prompt", entry_id)
        finally:
            with self._lock:
                self._prompt_outstanding = False

    def _client_name(self, client_id: str) -> str | None:
        if self.client_name_lookup is None:
            return None
        try:
            return self.client_name_lookup(client_id)
        except Exception as exc:
            logger.warning("Client name lookup failed for %s: %s", client_id, exc)
            return None
