"""
Compliance summaries for client tables, legend filters, exports and dashboard
tiles. All of them go through deadline.assess(), so a row and the count it
contributes to can never disagree.

Thresholds default to config.compliance_settings() (env overlaid with
compliance.yaml), read once per call. Explicit keyword thresholds win.
"""

from collections.abc import Iterable
from datetime import date

from backoffice import config

from .deadline import FilingAssessment, FilingStatus, assess
from .directory import ComplianceRecord, ObligationType


def resolve_thresholds(**thresholds) -> dict:
    """compliance_settings() with any explicit thresholds laid over it."""
    return {**config.compliance_settings(), **thresholds}


def _assess(record, reference, obligation, thresholds) -> FilingAssessment:
    if obligation is None:
        last_filed = record.cycle_last_filed()
    else:
        last_filed = record.last_filed_for(obligation)
    return assess(record.registration_date, last_filed, reference, **thresholds)


def assess_record(
    record: ComplianceRecord,
    reference=None,
    obligation: ObligationType | None = None,
    **thresholds,
) -> FilingAssessment:
    """
    Assess one client.

    With *obligation*, only that filing is considered. Without it, the
    client's cycle is dated by its oldest obligation (see
    ComplianceRecord.cycle_last_filed).
    """
    return _assess(record, reference, obligation, resolve_thresholds(**thresholds))


def classify_record(
    record: ComplianceRecord,
    reference=None,
    obligation: ObligationType | None = None,
    **thresholds,
) -> FilingStatus:
    return assess_record(record, reference, obligation, **thresholds).status


def summarize(
    records: Iterable[ComplianceRecord],
    reference=None,
    obligation: ObligationType | None = None,
    **thresholds,
) -> dict[FilingStatus, int]:
    """Count clients per status. Every status is present, zero if unused."""
    reference = reference if reference is not None else date.today()
    thresholds = resolve_thresholds(**thresholds)
    counts = {status: 0 for status in FilingStatus}
    for record in records:
        counts[_assess(record, reference, obligation, thresholds).status] += 1
    return counts


def filter_by_status(
    records: Iterable[ComplianceRecord],
    status: FilingStatus,
    reference=None,
    obligation: ObligationType | None = None,
    **thresholds,
) -> list[ComplianceRecord]:
    """Legend filter: the clients a status tile counts, in input order."""
    reference = reference if reference is not None else date.today()
    thresholds = resolve_thresholds(**thresholds)
    return [
        r
        for r in records
        if _assess(r, reference, obligation, thresholds).status == status
    ]


def _fmt(d: date | None) -> str:
    return d.strftime("%d/%m/%Y") if d else "-"


def export_rows(
    records: Iterable[ComplianceRecord], reference=None, **thresholds
) -> list[dict]:
    """Flat rows for spreadsheet/PDF export."""
    reference = reference if reference is not None else date.today()
    thresholds = resolve_thresholds(**thresholds)
    rows = []
    for record in records:
        result = _assess(record, reference, None, thresholds)
        reg = record.registration_date
        rows.append(
            {
                "Client Name": record.client_name,
                "Reg Number": record.registration_number or "",
                "Reg Date": _fmt(reg),
                "Due Month": reg.strftime("%B") if reg else "-",
                "Next Due": _fmt(result.due_date),
                "CIPC Filed": _fmt(record.last_filed_for(ObligationType.ANNUAL_RETURN)),
                "BO Filed": _fmt(record.last_filed_for(ObligationType.BENEFICIAL_OWNERSHIP)),
                "Status": result.label,
            }
        )
    return rows
