"""
Customer Directory - read-only compliance records per client.

Rows are validated once here, at the repository boundary, into
ComplianceRecord. A row whose dates cannot be parsed becomes a record without
a registration date, which the classifier reports as UNKNOWN.
"""

import logging
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, ValidationError, field_validator

from backoffice.store import Store
from backoffice.timeutil import parse_calendar_date

logger = logging.getLogger(__name__)


class ObligationType(StrEnum):
    ANNUAL_RETURN = "annual_return"  # CIPC annual return
    BENEFICIAL_OWNERSHIP = "beneficial_ownership"  # BO declaration


# Directory column holding the last filing for each obligation.
OBLIGATION_COLUMNS: dict[ObligationType, str] = {
    ObligationType.ANNUAL_RETURN: "last_cipc_filed",
    ObligationType.BENEFICIAL_OWNERSHIP: "last_bo_filed",
}


class ClientNotFound(LookupError):
    """Raised when the directory has no client with the requested id."""


class DirectoryError(Exception):
    """Raised when the directory backend cannot be read."""


@dataclass(frozen=True)
class ComplianceRecord:
    client_id: str
    registration_date: date | None
    last_filed: Mapping[ObligationType, date | None] = field(default_factory=dict)
    client_name: str = ""
    registration_number: str | None = None

    def last_filed_for(self, obligation: ObligationType) -> date | None:
        return self.last_filed.get(obligation)

    def cycle_last_filed(self) -> date | None:
        """
        The filing that dates the current cycle: the oldest obligation.

        A client counts as filed only once every obligation is filed, so any
        missing obligation makes the whole cycle unfiled (None).
        """
        dates = [self.last_filed.get(o) for o in ObligationType]
        if any(d is None for d in dates):
            return None
        return min(dates)


class ClientRow(BaseModel):
    """Shape of a clients row as the directory accepts it."""

    id: str
    client_name: str = ""
    registration_number: str | None = None
    registration_date: date | None = None
    last_cipc_filed: date | None = None
    last_bo_filed: date | None = None

    @field_validator(
        "registration_date", "last_cipc_filed", "last_bo_filed", mode="before"
    )
    @classmethod
    def parse_lenient_date(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        parsed = parse_calendar_date(v)
        if parsed is None:
            raise ValueError(f"unparseable date: {v!r}")
        return parsed

    def to_record(self) -> ComplianceRecord:
        return ComplianceRecord(
            client_id=self.id,
            client_name=self.client_name,
            registration_number=self.registration_number,
            registration_date=self.registration_date,
            last_filed={
                ObligationType.ANNUAL_RETURN: self.last_cipc_filed,
                ObligationType.BENEFICIAL_OWNERSHIP: self.last_bo_filed,
            },
        )


def record_from_row(row: dict) -> ComplianceRecord:
    """Validate a raw row; malformed dates degrade to an undated record."""
    try:
        return ClientRow.model_validate(row).to_record()
    except ValidationError as exc:
        logger.warning(
            "Client %s has malformed compliance dates: %s",
            row.get("id"),
            "; ".join(e["msg"] for e in exc.errors()),
        )
        return ComplianceRecord(
            client_id=str(row.get("id", "")),
            client_name=str(row.get("client_name") or ""),
            registration_number=row.get("registration_number"),
            registration_date=None,
        )


class CustomerDirectory(Protocol):
    def get_compliance_record(self, client_id: str) -> ComplianceRecord: ...

    def list_compliance_records(self) -> list[ComplianceRecord]: ...


class SqliteCustomerDirectory:
    """Customer directory over the clients table."""

    def __init__(self, store: Store):
        self.store = store

    def get_compliance_record(self, client_id: str) -> ComplianceRecord:
        try:
            row = self.store.get("clients", client_id)
        except sqlite3.Error as exc:
            raise DirectoryError(f"Failed to read client {client_id}: {exc}") from exc
        if row is None:
            raise ClientNotFound(client_id)
        return record_from_row(row)

    def list_compliance_records(self) -> list[ComplianceRecord]:
        try:
            rows = self.store.query("SELECT * FROM clients ORDER BY client_name, id")
        except sqlite3.Error as exc:
            raise DirectoryError(f"Failed to list clients: {exc}") from exc
        return [record_from_row(row) for row in rows]

    def client_name(self, client_id: str) -> str | None:
        """Display name for prompts; None when unknown."""
        try:
            row = self.store.get("clients", client_id)
        except sqlite3.Error as exc:
            raise DirectoryError(f"Failed to read client {client_id}: {exc}") from exc
        return row.get("client_name") if row else None
