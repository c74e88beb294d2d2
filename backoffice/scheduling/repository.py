"""
Commitment Repository - read-only lookup of tasks and events by participant.

find_by_participants() walks every association that can tie a person to a
commitment, in this order:

1. tasks.assigned_to
2. task_assignees
3. calendar_events.created_by
4. event_attendees
5. calendar_events.attendees (embedded JSON list)

A record reachable through several associations is returned once per
association; callers decide how to merge them.
"""

import json
import logging
import sqlite3
from collections import defaultdict
from collections.abc import Iterable
from typing import Protocol

from pydantic import ValidationError

from backoffice import safe_sql
from backoffice.store import Store

from .commitments import Commitment, EventRow, TaskRow

logger = logging.getLogger(__name__)


class QueryError(Exception):
    """Raised when commitments could not be read from the backend."""


class CommitmentRepository(Protocol):
    def find_by_participants(self, participant_ids: Iterable[str]) -> list[Commitment]: ...


class SqliteCommitmentRepository:
    def __init__(self, store: Store):
        self.store = store

    def find_by_participants(self, participant_ids: Iterable[str]) -> list[Commitment]:
        ids = list(dict.fromkeys(p for p in participant_ids if p))
        if not ids:
            return []
        marks = safe_sql.in_placeholders(len(ids))

        try:
            task_sources = [
                ("tasks.assigned_to", self._query(
                    f"SELECT * FROM tasks WHERE assigned_to IN ({marks}) ORDER BY start_time, id",
                    ids,
                )),
                ("task_assignees", self._query(
                    "SELECT DISTINCT t.* FROM tasks t "
                    "JOIN task_assignees a ON a.task_id = t.id "
                    f"WHERE a.user_id IN ({marks}) ORDER BY t.start_time, t.id",
                    ids,
                )),
            ]
            event_sources = [
                ("calendar_events.created_by", self._query(
                    f"SELECT * FROM calendar_events WHERE created_by IN ({marks}) "
                    "ORDER BY start_time, id",
                    ids,
                )),
                ("event_attendees", self._query(
                    "SELECT DISTINCT e.* FROM calendar_events e "
                    "JOIN event_attendees a ON a.event_id = e.id "
                    f"WHERE a.user_id IN ({marks}) ORDER BY e.start_time, e.id",
                    ids,
                )),
                ("calendar_events.attendees", self._embedded_attendee_rows(ids)),
            ]

            task_links = self._links(
                "task_assignees", "task_id", {r["id"] for _, rows in task_sources for r in rows}
            )
            event_links = self._links(
                "event_attendees", "event_id", {r["id"] for _, rows in event_sources for r in rows}
            )
        except sqlite3.Error as exc:
            raise QueryError(f"Commitment lookup failed: {exc}") from exc

        wanted = set(ids)
        found: list[Commitment] = []
        for source, rows in task_sources:
            for row in rows:
                c = self._validate(TaskRow, row, task_links.get(row["id"], set()), source)
                if c is not None:
                    found.append(c)
        for source, rows in event_sources:
            for row in rows:
                c = self._validate(EventRow, row, event_links.get(row["id"], set()), source)
                if c is not None and c.participants & wanted:
                    found.append(c)
        return found

    def _query(self, sql: str, params: list) -> list[dict]:
        return self.store.query(sql, params)

    def _embedded_attendee_rows(self, ids: list[str]) -> list[dict]:
        # Coarse text match; EventRow validation decides actual membership.
        clause = " OR ".join("instr(attendees, ?) > 0" for _ in ids)
        return self._query(
            f"SELECT * FROM calendar_events WHERE {clause} ORDER BY start_time, id",
            [json.dumps(i) for i in ids],
        )

    def _links(self, table: str, key_column: str, keys: set[str]) -> dict[str, set[str]]:
        if not keys:
            return {}
        ordered = sorted(keys)
        rows = self._query(
            safe_sql.select(
                table,
                columns=f"{key_column}, user_id",
                where=f"{key_column} IN ({safe_sql.in_placeholders(len(ordered))})",
            ),
            ordered,
        )
        links: dict[str, set[str]] = defaultdict(set)
        for row in rows:
            links[row[key_column]].add(row["user_id"])
        return links

    @staticmethod
    def _validate(model, row: dict, linked: set[str], source: str) -> Commitment | None:
        try:
            return model.model_validate(row).to_commitment(linked, source)
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed %s %s: %s",
                model.__name__,
                row.get("id"),
                "; ".join(e["msg"] for e in exc.errors()),
            )
            return None
