"""
Time-Entry Repository - persistence for timer entries.

Two implementations share the TimeEntryRepository protocol:
- SqliteTimeEntryRepository: the time_entries table. A partial UNIQUE index
  (schema.INDEXES) rejects a second active entry for an operator, so the
  one-active-timer invariant holds even when two sessions race on start().
- InMemoryTimeEntryRepository: same contract behind a lock, for hosts without
  a database and for tests.

Storage failures surface as RepositoryError; a rejected second active entry
surfaces as DuplicateActiveTimer.
"""

import dataclasses
import logging
import sqlite3
import threading
from typing import Any, Protocol

from backoffice.store import Store
from backoffice.timeutil import to_iso, utc_now

from .entries import TimeEntry, encode_fields

logger = logging.getLogger(__name__)

TABLE = "time_entries"


class RepositoryError(Exception):
    """Raised when the time-entry backend fails a read or write."""


class DuplicateActiveTimer(RepositoryError):
    """Raised when an insert would give an operator a second active entry."""


class TimeEntryRepository(Protocol):
    def insert(self, entry: TimeEntry) -> None: ...

    def update(self, entry_id: str, fields: dict[str, Any]) -> bool: ...

    def find_active(self, operator_id: str) -> TimeEntry | None: ...

    def get(self, entry_id: str) -> TimeEntry | None: ...

    def list_active(self) -> list[TimeEntry]: ...


class SqliteTimeEntryRepository:
    """Time entries stored in SQLite through a Store."""

    def __init__(self, store: Store):
        self.store = store

    def insert(self, entry: TimeEntry) -> None:
        try:
            self.store.insert(TABLE, entry.to_row())
        except sqlite3.IntegrityError as exc:
            if f"{TABLE}.operator_id" in str(exc):
                raise DuplicateActiveTimer(
                    f"Operator {entry.operator_id} already has an active timer"
                ) from exc
            raise RepositoryError(f"Failed to insert time entry {entry.id}: {exc}") from exc
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to insert time entry {entry.id}: {exc}") from exc

    def update(self, entry_id: str, fields: dict[str, Any]) -> bool:
        data = encode_fields(fields)
        data["updated_at"] = to_iso(utc_now())
        try:
            return self.store.update(TABLE, entry_id, data)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to update time entry {entry_id}: {exc}") from exc

    def find_active(self, operator_id: str) -> TimeEntry | None:
        rows = self._query(
            f"SELECT * FROM {TABLE} WHERE operator_id = ? AND active = 1 "
            "ORDER BY start_time DESC LIMIT 1",
            [operator_id],
        )
        return self._decode(rows[0]) if rows else None

    def get(self, entry_id: str) -> TimeEntry | None:
        rows = self._query(f"SELECT * FROM {TABLE} WHERE id = ?", [entry_id])
        return self._decode(rows[0]) if rows else None

    def list_active(self) -> list[TimeEntry]:
        """Every running timer, oldest first (admin view)."""
        rows = self._query(f"SELECT * FROM {TABLE} WHERE active = 1 ORDER BY start_time")
        return [self._decode(row) for row in rows]

    def list_for_operator(self, operator_id: str, limit: int = 50) -> list[TimeEntry]:
        rows = self._query(
            f"SELECT * FROM {TABLE} WHERE operator_id = ? ORDER BY start_time DESC LIMIT ?",
            [operator_id, limit],
        )
        return [self._decode(row) for row in rows]

    def _query(self, sql: str, params: list | None = None) -> list[dict]:
        try:
            return self.store.query(sql, params)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Time entry query failed: {exc}") from exc

    @staticmethod
    def _decode(row: dict) -> TimeEntry:
        try:
            return TimeEntry.from_row(row)
        except (ValueError, TypeError) as exc:
            raise RepositoryError(f"Malformed time entry {row.get('id')}: {exc}") from exc


class InMemoryTimeEntryRepository:
    """Dict-backed repository with the same uniqueness rule as the SQLite one."""

    def __init__(self):
        self._entries: dict[str, TimeEntry] = {}
        self._lock = threading.Lock()

    def insert(self, entry: TimeEntry) -> None:
        with self._lock:
            if entry.id in self._entries:
                raise RepositoryError(f"Duplicate time entry id {entry.id}")
            if entry.active and any(
                e.active and e.operator_id == entry.operator_id for e in self._entries.values()
            ):
                raise DuplicateActiveTimer(
                    f"Operator {entry.operator_id} already has an active timer"
                )
            self._entries[entry.id] = entry

    def update(self, entry_id: str, fields: dict[str, Any]) -> bool:
        with self._lock:
            current = self._entries.get(entry_id)
            if current is None:
                return False
            try:
                self._entries[entry_id] = dataclasses.replace(current, **fields)
            except (TypeError, ValueError) as exc:
                raise RepositoryError(f"Failed to update time entry {entry_id}: {exc}") from exc
            return True

    def find_active(self, operator_id: str) -> TimeEntry | None:
        with self._lock:
            active = [e for e in self._entries.values() if e.active and e.operator_id == operator_id]
        return max(active, key=lambda e: e.start_time) if active else None

    def get(self, entry_id: str) -> TimeEntry | None:
        with self._lock:
            return self._entries.get(entry_id)

    def list_active(self) -> list[TimeEntry]:
        with self._lock:
            active = [e for e in self._entries.values() if e.active]
        return sorted(active, key=lambda e: e.start_time)
