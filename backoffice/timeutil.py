"""
Time Utilities.

All timestamps are stored as ISO 8601 UTC with Z suffix and millisecond
precision (YYYY-MM-DDTHH:MM:SS.sssZ). Naive datetimes are taken as UTC.

Calendar dates arrive in whatever shape the client spreadsheets used, so
parse_calendar_date() is lenient and returns None instead of raising.
"""

import logging
import re
from datetime import UTC, date, datetime

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")
DMY_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")


def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso(dt: datetime) -> str:
    """Canonical storage form: 2026-02-08T14:30:00.000Z."""
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts the canonical Z form, offsets, and naive ISO strings.
    Returns None for None/empty. Raises ValueError for garbage.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text.replace(" ", "T", 1)))


def parse_calendar_date(value) -> date | None:
    """
    Parse a calendar date from the formats found in client records.

    Supported: date, datetime, YYYY-MM-DD, YYYY/MM/DD, DD/MM/YYYY,
    DD-MM-YYYY, ISO timestamps. Returns None when absent or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        m = ISO_DATE_RE.match(text)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        m = DMY_DATE_RE.match(text)
        if m:
            return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        # Keep the date as written, same as the datetime branch above
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text.replace(" ", "T", 1)).date()
    except ValueError:
        logger.debug("Unparseable calendar date: %r", text)
        return None
