"""
TimeEntry - one block of billable time logged by an operator against a client.

An entry is active (end_time is None) from start() until stop(). Durations are
wall-clock: paused intervals are billed.
"""

import math
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from backoffice.timeutil import parse_calendar_date, parse_timestamp, to_iso

TIMESTAMP_FIELDS = frozenset({"start_time", "end_time", "paused_at", "resumed_at"})
BOOL_FIELDS = frozenset({"is_paused", "active", "is_billable"})


@dataclass(frozen=True)
class TimeEntry:
    id: str
    operator_id: str
    client_id: str
    start_time: datetime
    description: str = ""
    end_time: datetime | None = None
    is_paused: bool = False
    paused_at: datetime | None = None
    resumed_at: datetime | None = None
    duration_hours: Decimal = Decimal("0")
    active: bool = True
    project_id: str | None = None
    entry_date: date | None = None
    hourly_rate: Decimal | None = None
    is_billable: bool = True
    entry_method: str = "timer"
    status: str = "draft"

    def __post_init__(self):
        if (self.end_time is None) != self.active:
            raise ValueError(
                f"TimeEntry {self.id}: end_time must be absent exactly while active "
                f"(active={self.active}, end_time={self.end_time})"
            )

    def elapsed_hours(self, now: datetime) -> Decimal:
        """Wall-clock hours from start to end (or *now* while active)."""
        return hours_between(self.start_time, self.end_time or now)

    def to_row(self) -> dict[str, Any]:
        """Storage encoding for the time_entries table."""
        return encode_fields(asdict(self))

    @classmethod
    def from_row(cls, row: dict) -> "TimeEntry":
        """Decode a time_entries row. Raises ValueError on malformed rows."""
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        for key in TIMESTAMP_FIELDS & data.keys():
            data[key] = parse_timestamp(data[key])
        for key in BOOL_FIELDS & data.keys():
            data[key] = bool(data[key])
        if data.get("entry_date") is not None:
            data["entry_date"] = parse_calendar_date(data["entry_date"])
        data["duration_hours"] = _to_decimal(data.get("duration_hours")) or Decimal("0")
        data["hourly_rate"] = _to_decimal(data.get("hourly_rate"))
        if data.get("start_time") is None:
            raise ValueError(f"time entry {row.get('id')} has no start_time")
        return cls(**data)


def _to_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal: {value!r}") from exc


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Encode entry fields for SQLite (ISO timestamps, numeric decimals, int flags)."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, datetime):
            out[key] = to_iso(value)
        elif isinstance(value, date):
            out[key] = value.isoformat()
        elif key == "duration_hours" and value is not None:
            out[key] = float(value)
        elif isinstance(value, Decimal):
            out[key] = str(value)
        elif isinstance(value, bool):
            out[key] = int(value)
        else:
            out[key] = value
    return out


def hours_between(start: datetime, end: datetime, places: int = 2) -> Decimal:
    """Elapsed hours rounded half-up to *places* decimals."""
    seconds = Decimal(str((end - start).total_seconds()))
    quantum = Decimal(1).scaleb(-places)
    return (seconds / Decimal(3600)).quantize(quantum, rounding=ROUND_HALF_UP)


def format_duration(hours) -> str:
    """1.5 -> '1h 30m'."""
    if not hours:
        return "0m"
    hours = float(hours)
    h = math.floor(hours)
    m = round((hours - h) * 60)
    if m == 60:
        h, m = h + 1, 0
    if h == 0:
        return f"{m}m"
    if m == 0:
        return f"{h}h"
    return f"{h}h {m}m"


def format_timer_display(seconds) -> str:
    """5445 -> '01:30:45'."""
    seconds = max(0, int(seconds))
    hrs, rem = divmod(seconds, 3600)
    mins, secs = divmod(rem, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"
