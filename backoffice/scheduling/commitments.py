"""
Commitments - tasks and calendar events with a time interval and participants.

Raw rows are validated here into frozen Commitment records. A task's
participants are its assignee plus any task_assignees rows; an event's are its
organizer (created_by), its embedded attendee list and any event_attendees
rows.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, field_validator, model_validator

from backoffice.timeutil import parse_timestamp

logger = logging.getLogger(__name__)


class CommitmentKind(StrEnum):
    TASK = "task"
    EVENT = "event"


@dataclass(frozen=True)
class Commitment:
    kind: CommitmentKind
    id: str
    title: str
    start_time: datetime | None
    end_time: datetime | None
    participants: frozenset[str]
    source: str = ""  # association the record was found through

    @property
    def key(self) -> tuple[CommitmentKind, str]:
        return (self.kind, self.id)

    @property
    def has_interval(self) -> bool:
        return self.start_time is not None and self.end_time is not None


class _IntervalRow(BaseModel):
    id: str
    title: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v):
        return parse_timestamp(v)

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValueError(f"end_time {self.end_time} is before start_time {self.start_time}")
        return self


class TaskRow(_IntervalRow):
    assigned_to: str | None = None

    def to_commitment(self, assignees: set[str], source: str) -> Commitment:
        participants = set(assignees)
        if self.assigned_to:
            participants.add(self.assigned_to)
        return Commitment(
            kind=CommitmentKind.TASK,
            id=self.id,
            title=self.title,
            start_time=self.start_time,
            end_time=self.end_time,
            participants=frozenset(participants),
            source=source,
        )


class EventRow(_IntervalRow):
    created_by: str | None = None
    attendees: list[str] = []

    @field_validator("attendees", mode="before")
    @classmethod
    def parse_attendees(cls, v):
        # A broken list loses only this source; organizer and linked rows still count
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed attendees JSON: %.60r", v)
                return []
        if not isinstance(v, list):
            logger.warning("Ignoring attendees: expected a list, got %s", type(v).__name__)
            return []
        # Attendees may be bare ids or {"id": ...} objects
        ids = [a.get("id") if isinstance(a, dict) else a for a in v]
        return [str(a) for a in ids if a]

    def to_commitment(self, linked: set[str], source: str) -> Commitment:
        participants = set(linked) | set(self.attendees)
        if self.created_by:
            participants.add(self.created_by)
        return Commitment(
            kind=CommitmentKind.EVENT,
            id=self.id,
            title=self.title,
            start_time=self.start_time,
            end_time=self.end_time,
            participants=frozenset(participants),
            source=source,
        )
