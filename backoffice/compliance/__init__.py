"""
Compliance Module

Annual filing obligations per client, anchored to the registration date.

Objects:
- ComplianceRecord (registration date + last filing per obligation)
- FilingStatus (FILED, ON_TIME, DUE_SOON, OVERDUE, UNKNOWN)

Invariants:
- assess()/classify() are the only place status is derived
- Classification never raises; bad dates give UNKNOWN
"""

from .deadline import (
    STATUS_LABELS,
    FilingAssessment,
    FilingStatus,
    anniversary,
    assess,
    classify,
    due_date,
)
from .directory import (
    ClientNotFound,
    ComplianceRecord,
    CustomerDirectory,
    DirectoryError,
    ObligationType,
    SqliteCustomerDirectory,
)
from .summary import (
    assess_record,
    classify_record,
    export_rows,
    filter_by_status,
    resolve_thresholds,
    summarize,
)

__all__ = [
    "STATUS_LABELS",
    "FilingAssessment",
    "FilingStatus",
    "anniversary",
    "assess",
    "classify",
    "due_date",
    "ClientNotFound",
    "ComplianceRecord",
    "CustomerDirectory",
    "DirectoryError",
    "ObligationType",
    "SqliteCustomerDirectory",
    "assess_record",
    "classify_record",
    "export_rows",
    "filter_by_status",
    "resolve_thresholds",
    "summarize",
]
