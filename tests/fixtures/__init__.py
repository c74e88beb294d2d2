"""
Test fixtures for deterministic testing.

This module provides:
- fixture_db: temp SQLite databases plus row seeding helpers
- fakes: a hand-driven clock and reminder scheduler
"""

from .fakes import T0, FakeClock, ManualReminder, ManualScheduler
from .fixture_db import add_client, add_event, add_task, create_fixture_db, guard_no_live_db

__all__ = [
    "T0",
    "FakeClock",
    "ManualReminder",
    "ManualScheduler",
    "add_client",
    "add_event",
    "add_task",
    "create_fixture_db",
    "guard_no_live_db",
]
