"""
Time Tracking Module

Start/stop billable timers per operator, with pause/resume and a periodic
"still running?" prompt.

Objects:
- TimeEntry (one timed block against a client)
- TimerController (one operator session's timer)

Invariants:
- At most one active TimeEntry per operator
- end_time is absent exactly while an entry is active
- One live reminder per active timer, released on stop() or close()
"""

from .confirmation import ConfirmationPort, PromptContext, StaticConfirmation, resolve_answer
from .controller import TimerController, TimerState
from .entries import TimeEntry, format_duration, format_timer_display, hours_between
from .errors import InvalidTransition, PersistenceError, StartConflict, TimerError
from .reminders import (
    AsyncioReminderScheduler,
    ReminderHandle,
    ReminderScheduler,
    ThreadingReminderScheduler,
    next_reminder_delay,
)
from .repository import (
    DuplicateActiveTimer,
    InMemoryTimeEntryRepository,
    RepositoryError,
    SqliteTimeEntryRepository,
    TimeEntryRepository,
)

__all__ = [
    "ConfirmationPort",
    "PromptContext",
    "StaticConfirmation",
    "resolve_answer",
    "TimerController",
    "TimerState",
    "TimeEntry",
    "format_duration",
    "format_timer_display",
    "hours_between",
    "InvalidTransition",
    "PersistenceError",
    "StartConflict",
    "TimerError",
    "AsyncioReminderScheduler",
    "ReminderHandle",
    "ReminderScheduler",
    "ThreadingReminderScheduler",
    "next_reminder_delay",
    "DuplicateActiveTimer",
    "InMemoryTimeEntryRepository",
    "RepositoryError",
    "SqliteTimeEntryRepository",
    "TimeEntryRepository",
]
