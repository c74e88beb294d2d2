"""
Deadline Classifier - annual filing recurrence and status buckets.

Pure functions only. Every status shown to a user, whether on a client row or
in a dashboard count, comes out of assess()/classify(). Nothing else derives
filing status.

Rules:
- No registration date -> UNKNOWN
- Last filing within the filed window (365.25 days) -> FILED
- This year's anniversary already passed -> OVERDUE
- Anniversary within DUE_SOON_DAYS -> DUE_SOON
- Otherwise -> ON_TIME

The reported due_date is the next anniversary on or after the reference date.
"""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from backoffice import config
from backoffice.timeutil import parse_calendar_date


class FilingStatus(StrEnum):
    FILED = "filed"
    ON_TIME = "on_time"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    UNKNOWN = "unknown"


STATUS_LABELS: dict[FilingStatus, str] = {
    FilingStatus.FILED: "Filed",
    FilingStatus.ON_TIME: "On time",
    FilingStatus.DUE_SOON: "Due this month",
    FilingStatus.OVERDUE: "Overdue",
    FilingStatus.UNKNOWN: "Unknown",
}


@dataclass(frozen=True)
class FilingAssessment:
    """Status plus the dates a row needs to render it."""

    status: FilingStatus
    due_date: date | None = None
    days_until_due: int | None = None
    days_overdue: int = 0
    last_filed: date | None = None

    @property
    def label(self) -> str:
        return STATUS_LABELS[self.status]


UNKNOWN = FilingAssessment(status=FilingStatus.UNKNOWN)


def anniversary(registration: date, year: int) -> date:
    """Registration month/day in *year*; Feb 29 falls back to Feb 28 in common years."""
    try:
        return registration.replace(year=year)
    except ValueError:
        return date(year, 2, 28)


def due_date(registration, reference) -> date | None:
    """Next anniversary of *registration* on or after *reference*."""
    reg = parse_calendar_date(registration)
    ref = parse_calendar_date(reference)
    if reg is None or ref is None:
        return None
    try:
        due = anniversary(reg, ref.year)
        if due < ref:
            due = anniversary(reg, ref.year + 1)
    except (ValueError, OverflowError):
        return None
    return due


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def assess(
    registration,
    last_filed,
    reference=None,
    *,
    due_soon_days: int | None = None,
    filed_window_days: float | None = None,
) -> FilingAssessment:
    """
    Classify one filing obligation.

    Dates may be date/datetime objects or strings in any format
    parse_calendar_date() accepts. Never raises: anything unparseable
    yields an UNKNOWN assessment.

    Thresholds left as None fall back to the env constants in config only;
    compliance.yaml is not read here. Hosts that want the file overrides go
    through the summary helpers (assess_record, summarize, ...), which apply
    config.compliance_settings().
    """
    if due_soon_days is None:
        due_soon_days = config.DUE_SOON_DAYS
    if filed_window_days is None:
        filed_window_days = config.FILED_WINDOW_DAYS

    reg = parse_calendar_date(registration)
    ref = date.today() if reference is None else parse_calendar_date(reference)
    if reg is None or ref is None:
        return UNKNOWN

    filed = parse_calendar_date(last_filed)
    if filed is None and not _is_blank(last_filed):
        return UNKNOWN

    next_due = due_date(reg, ref)
    if next_due is None:
        return UNKNOWN
    days_until_due = (next_due - ref).days

    if filed is not None and (ref - filed).days <= filed_window_days:
        return FilingAssessment(
            status=FilingStatus.FILED,
            due_date=next_due,
            days_until_due=days_until_due,
            last_filed=filed,
        )

    cycle_due = anniversary(reg, ref.year)
    delta = (cycle_due - ref).days
    if delta < 0:
        status = FilingStatus.OVERDUE
    elif delta <= due_soon_days:
        status = FilingStatus.DUE_SOON
    else:
        status = FilingStatus.ON_TIME

    return FilingAssessment(
        status=status,
        due_date=next_due,
        days_until_due=days_until_due,
        days_overdue=-delta if delta < 0 else 0,
        last_filed=filed,
    )


def classify(registration, last_filed, reference=None, **thresholds) -> FilingStatus:
    """Filing status for one obligation. See assess()."""
    return assess(registration, last_filed, reference, **thresholds).status
