"""
Declarative Schema Definition, the single source of truth.

Every table and index the core reads or writes lives here. db.ensure_schema()
reads this and creates whatever is missing.

Adding a column = add one line here.
"""

from collections import OrderedDict

# =============================================================================
# Schema version: bump when you change this file
# =============================================================================
SCHEMA_VERSION = 3

# =============================================================================
# Table Definitions
#
# Format: TABLES[name] = {"columns": [(col_name, col_ddl), ...]}
# =============================================================================

TABLES: dict[str, dict] = OrderedDict()

# ---------------------------------------------------------------------------
# Customer directory: clients (registration + last filings per obligation)
# ---------------------------------------------------------------------------
TABLES["clients"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("client_name", "TEXT NOT NULL"),
        ("registration_number", "TEXT"),
        ("registration_date", "TEXT"),
        ("last_cipc_filed", "TEXT"),
        ("last_bo_filed", "TEXT"),
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
        ("updated_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
}

# ---------------------------------------------------------------------------
# Timekeeping: time_entries
# ---------------------------------------------------------------------------
TABLES["time_entries"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("operator_id", "TEXT NOT NULL"),
        ("client_id", "TEXT NOT NULL"),
        ("project_id", "TEXT"),
        ("description", "TEXT NOT NULL DEFAULT ''"),
        ("entry_date", "TEXT NOT NULL"),
        ("start_time", "TEXT NOT NULL"),
        ("end_time", "TEXT"),
        ("is_paused", "INTEGER NOT NULL DEFAULT 0"),
        ("paused_at", "TEXT"),
        ("resumed_at", "TEXT"),
        ("duration_hours", "REAL NOT NULL DEFAULT 0"),
        ("active", "INTEGER NOT NULL DEFAULT 1"),
        ("hourly_rate", "TEXT"),
        ("is_billable", "INTEGER NOT NULL DEFAULT 1"),
        ("entry_method", "TEXT NOT NULL DEFAULT 'timer'"),
        ("status", "TEXT NOT NULL DEFAULT 'draft'"),
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
        ("updated_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
    "checks": ["(active = 1 AND end_time IS NULL) OR (active = 0 AND end_time IS NOT NULL)"],
}

# ---------------------------------------------------------------------------
# Scheduling: tasks + assignees
# ---------------------------------------------------------------------------
TABLES["tasks"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("title", "TEXT NOT NULL"),
        ("client_id", "TEXT"),
        ("assigned_to", "TEXT"),
        ("created_by", "TEXT"),
        ("start_time", "TEXT"),
        ("end_time", "TEXT"),
        ("due_date", "TEXT"),
        ("status", "TEXT NOT NULL DEFAULT 'pending'"),
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
}

TABLES["task_assignees"] = {
    "columns": [
        ("task_id", "TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE"),
        ("user_id", "TEXT NOT NULL"),
    ],
}

# ---------------------------------------------------------------------------
# Scheduling: calendar events + attendees
# ---------------------------------------------------------------------------
TABLES["calendar_events"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("title", "TEXT NOT NULL"),
        ("event_type", "TEXT NOT NULL DEFAULT 'meeting'"),
        ("client_id", "TEXT"),
        ("created_by", "TEXT"),
        ("start_time", "TEXT"),
        ("end_time", "TEXT"),
        ("attendees", "TEXT NOT NULL DEFAULT '[]'"),  # JSON list of user ids
        ("is_all_day", "INTEGER NOT NULL DEFAULT 0"),
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
}

TABLES["event_attendees"] = {
    "columns": [
        ("event_id", "TEXT NOT NULL REFERENCES calendar_events(id) ON DELETE CASCADE"),
        ("user_id", "TEXT NOT NULL"),
    ],
}

# =============================================================================
# Indexes
#
# Format: (index_name, table, [columns], unique, partial_where)
# =============================================================================

INDEXES: list[tuple[str, str, list[str], bool, str | None]] = [
    # At most one active timer per operator, enforced by storage.
    ("idx_time_entries_one_active", "time_entries", ["operator_id"], True, "active = 1"),
    ("idx_time_entries_operator", "time_entries", ["operator_id", "start_time"], False, None),
    ("idx_tasks_assigned_to", "tasks", ["assigned_to"], False, None),
    ("idx_task_assignees_user", "task_assignees", ["user_id", "task_id"], True, None),
    ("idx_events_created_by", "calendar_events", ["created_by"], False, None),
    ("idx_event_attendees_user", "event_attendees", ["user_id", "event_id"], True, None),
]
