#!/usr/bin/env python3
"""
Back office CLI - compliance status, running timers and conflict checks.

Usage:
    python -m cli.main compliance [--date YYYY-MM-DD] [--status overdue]
    python -m cli.main timers [--operator alice]
    python -m cli.main conflicts --who alice --start ISO --end ISO
"""

import argparse
import sys
from datetime import date

from backoffice import config
from backoffice.compliance import (
    STATUS_LABELS,
    DirectoryError,
    FilingStatus,
    SqliteCustomerDirectory,
)
from backoffice.compliance.summary import assess_record, filter_by_status, summarize
from backoffice.observability import OperationContext, configure_logging
from backoffice.scheduling import ConflictDetector, SqliteCommitmentRepository
from backoffice.store import get_store
from backoffice.time_tracking import (
    RepositoryError,
    SqliteTimeEntryRepository,
    format_duration,
    format_timer_display,
)
from backoffice.timeutil import parse_timestamp, utc_now


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [
            max(len(str(row[i])) for row in [headers] + rows)
            for i in range(len(headers))
        ]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths, strict=False))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths, strict=False)))


def fail(message: str) -> int:
    """Print a one-line error and return the usage-error exit code."""
    print(f"Error: {message}", file=sys.stderr)
    return 2


def cmd_compliance(args) -> int:
    """Show filing status per client plus dashboard counts."""
    store = get_store(args.db)
    directory = SqliteCustomerDirectory(store)
    try:
        reference = date.fromisoformat(args.date) if args.date else date.today()
    except ValueError:
        return fail(f"invalid --date {args.date!r}, expected YYYY-MM-DD")
    thresholds = config.compliance_settings()
    try:
        all_records = directory.list_compliance_records()
    except DirectoryError as exc:
        return fail(f"could not read clients: {exc}")
    records = all_records

    if args.status:
        records = filter_by_status(all_records, FilingStatus(args.status), reference, **thresholds)

    print_header(f"Compliance status as of {reference.isoformat()}")
    rows = []
    for record in records:
        result = assess_record(record, reference, **thresholds)
        rows.append(
            [
                record.client_name or record.client_id,
                record.registration_date.isoformat() if record.registration_date else "-",
                result.due_date.isoformat() if result.due_date else "-",
                result.label,
            ]
        )
    if rows:
        print_table(["Client", "Registered", "Next due", "Status"], rows)
    else:
        print("  No clients.")

    counts = summarize(all_records, reference, **thresholds)
    print()
    for status, n in counts.items():
        print(f"  {STATUS_LABELS[status]:<16} {n}")
    return 0


def cmd_timers(args) -> int:
    """Show every running timer, or one operator's recent entries."""
    store = get_store(args.db)
    repo = SqliteTimeEntryRepository(store)
    now = utc_now()
    try:
        if args.operator:
            entries = repo.list_for_operator(args.operator, limit=args.limit)
        else:
            entries = repo.list_active()
    except RepositoryError as exc:
        return fail(f"could not read timers: {exc}")

    if args.operator:
        print_header(f"Recent entries for {args.operator}")
        if not entries:
            print("  No entries.")
            return 0
        rows = [
            [
                e.client_id,
                e.start_time.isoformat(timespec="minutes"),
                format_duration(e.elapsed_hours(now)),
                "active" if e.active else e.status,
                e.description,
            ]
            for e in entries
        ]
        print_table(["Client", "Started", "Hours", "Status", "Description"], rows)
        return 0

    print_header("Active timers")
    if not entries:
        print("  No timers running.")
        return 0
    rows = [
        [
            e.operator_id,
            e.client_id,
            e.start_time.isoformat(timespec="minutes"),
            format_timer_display((now - e.start_time).total_seconds()),
            "paused" if e.is_paused else "running",
        ]
        for e in entries
    ]
    print_table(["Operator", "Client", "Started", "Elapsed", "State"], rows)
    return 0


def cmd_conflicts(args) -> int:
    """Check a proposed interval against existing tasks and events."""
    store = get_store(args.db)
    detector = ConflictDetector(SqliteCommitmentRepository(store))
    try:
        start = parse_timestamp(args.start)
        end = parse_timestamp(args.end)
    except ValueError:
        return fail(f"invalid interval {args.start!r} - {args.end!r}, expected ISO timestamps")
    if start is None or end is None:
        return fail("--start and --end must not be empty")
    if end < start:
        return fail(f"--end {args.end} is before --start {args.start}")

    report = detector.find_conflicts(args.who, start, end, exclude_commitment_id=args.exclude)
    if report.failed:
        return fail(f"conflict check failed: {report.error}")

    print_header(f"Conflicts for {', '.join(args.who)}")
    if not report.has_conflicts:
        print("  None.")
        return 0
    rows = [
        [
            c.kind,
            c.title,
            c.start_time.isoformat(),
            c.end_time.isoformat(),
            ", ".join(sorted(c.shared_participants)),
        ]
        for c in report
    ]
    print_table(["Kind", "Title", "Start", "End", "Shared"], rows)
    return 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="backoffice", description=__doc__.splitlines()[1])
    p.add_argument("--db", default=None, help="database path (default: BACKOFFICE_DB or ~/.backoffice)")
    p.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("compliance", help="filing status per client")
    c.add_argument("--date", help="reference date (YYYY-MM-DD), default today")
    c.add_argument("--status", choices=[s.value for s in FilingStatus])
    c.set_defaults(func=cmd_compliance)

    t = sub.add_parser("timers", help="running timers")
    t.add_argument("--operator", help="show this operator's recent entries instead")
    t.add_argument("--limit", type=int, default=20)
    t.set_defaults(func=cmd_timers)

    k = sub.add_parser("conflicts", help="check a proposed interval")
    k.add_argument("--who", action="append", required=True, help="participant id (repeatable)")
    k.add_argument("--start", required=True)
    k.add_argument("--end", required=True)
    k.add_argument("--exclude", default=None, help="commitment id being edited")
    k.set_defaults(func=cmd_conflicts)
    return p


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    json_format = None if config.LOG_JSON is None else config.LOG_JSON == "1"
    configure_logging(args.log_level, json_format=json_format)
    with OperationContext(correlation_id=f"cli-{args.command}"):
        return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
