"""
Centralized SQL construction with validated identifiers.

All dynamic SQL assembly lives here. Table and column names are validated
against _SAFE_IDENTIFIER_RE before interpolation. Values are always passed
as parameterized ?, never interpolated.

SQLite does not support parameterized identifiers (? works only for values,
not table/column names), so every f-string in this file interpolates a
validated identifier only.
"""

# ruff: noqa: S608 - all identifiers validated via _validate() before interpolation.

from __future__ import annotations

import re

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate(name: str) -> str:
    """Validate that *name* is a safe SQL identifier.

    Returns the name unchanged if valid; raises ValueError otherwise.
    """
    if not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


# ────────────────────────────────────────────────────────────
# DDL: CREATE TABLE / INDEX
# ────────────────────────────────────────────────────────────


def create_table(table: str, columns: list[tuple[str, str]]) -> str:
    """Build CREATE TABLE IF NOT EXISTS from (name, ddl) pairs."""
    _validate(table)
    cols = ", ".join(f"{_validate(name)} {ddl}" for name, ddl in columns)
    return f"CREATE TABLE IF NOT EXISTS {table} ({cols})"


def create_index(
    name: str, table: str, columns: list[str], unique: bool = False, where: str | None = None
) -> str:
    """Build CREATE [UNIQUE] INDEX IF NOT EXISTS, optionally partial."""
    _validate(name)
    _validate(table)
    for col in columns:
        _validate(col)
    kind = "UNIQUE INDEX" if unique else "INDEX"
    sql = f"CREATE {kind} IF NOT EXISTS {name} ON {table} ({', '.join(columns)})"
    if where:
        sql += f" WHERE {where}"
    return sql


# ────────────────────────────────────────────────────────────
# DML: SELECT, INSERT, UPDATE, COUNT
# ────────────────────────────────────────────────────────────


def select(
    table: str,
    columns: str = "*",
    where: str | None = None,
    order_by: str | None = None,
    suffix: str = "",
) -> str:
    """Build SELECT with validated table name.

    *columns* is a raw column expression (e.g. ``"*"`` or ``"id, name"``).
    *where* is a raw WHERE clause without the keyword (e.g. ``"id = ?"``)
    and must use ``?`` for all values.
    """
    sql = f"SELECT {columns} FROM {_validate(table)}"
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    if suffix:
        sql += f" {suffix}"
    return sql


def insert(table: str, columns: list[str]) -> str:
    """Build a plain INSERT so UNIQUE constraints raise instead of replacing."""
    _validate(table)
    for col in columns:
        _validate(col)
    cols = ",".join(columns)
    placeholders = ",".join(["?" for _ in columns])
    return f"INSERT INTO {table} ({cols}) VALUES ({placeholders})"


def update(table: str, set_columns: list[str], where: str = "id = ?") -> str:
    """Build UPDATE SET with validated table+column names."""
    _validate(table)
    for col in set_columns:
        _validate(col)
    sets = ",".join(f"{col} = ?" for col in set_columns)
    return f"UPDATE {table} SET {sets} WHERE {where}"


# ────────────────────────────────────────────────────────────
# Helpers: IN-list placeholders
# ────────────────────────────────────────────────────────────


def in_placeholders(count: int) -> str:
    """Return ``?,?,?`` for use in ``IN (...)`` clauses."""
    if count <= 0:
        raise ValueError(f"IN clause needs at least 1 placeholder, got {count}")
    return ",".join("?" for _ in range(count))
