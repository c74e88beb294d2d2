"""
Centralized Database Access.

Single source of truth for:
- DB path resolution
- Connection factory
- Schema creation (declared in backoffice.schema)

ALL code must use this module for DB access. No direct sqlite3.connect() elsewhere.
"""

import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from backoffice import paths, safe_sql, schema

logger = logging.getLogger(__name__)

# Seconds a writer waits on a locked database before sqlite raises.
BUSY_TIMEOUT_SECONDS = 10.0


# ============================================================
# DB PATH RESOLUTION
# ============================================================


def get_db_path() -> Path:
    """
    Get the canonical DB path.

    Resolution order:
    1. BACKOFFICE_DB env var (explicit override)
    2. ~/.backoffice/data/backoffice.db (default via paths.db_path())
    """
    return paths.db_path()


# ============================================================
# CONNECTION FACTORY
# ============================================================


def connect(db_path: str | Path | None = None, row_factory: bool = True) -> sqlite3.Connection:
    """Open a configured connection. Caller owns closing it."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)
    if row_factory:
        conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def get_connection(
    db_path: str | Path | None = None,
    row_factory: bool = True,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Get a database connection with proper setup.

    Usage:
        with get_connection() as conn:
            conn.execute(...)
    """
    conn = connect(db_path, row_factory=row_factory)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


# ============================================================
# SCHEMA
# ============================================================


def ensure_schema(db_path: str | Path | None = None) -> int:
    """
    Create every declared table and index that does not exist yet.

    Returns the schema version now recorded in the database.
    """
    with get_connection(db_path) as conn:
        for table, table_def in schema.TABLES.items():
            columns = list(table_def["columns"])
            sql = safe_sql.create_table(table, columns)
            checks = table_def.get("checks") or []
            if checks:
                sql = sql[:-1] + "".join(f", CHECK ({c})" for c in checks) + ")"
            conn.execute(sql)

        for name, table, columns, unique, where in schema.INDEXES:
            conn.execute(safe_sql.create_index(name, table, columns, unique=unique, where=where))

        current = conn.execute("PRAGMA user_version").fetchone()[0]
        if current != schema.SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {int(schema.SCHEMA_VERSION)}")
            logger.info("Schema converged: v%s -> v%s", current, schema.SCHEMA_VERSION)

    return schema.SCHEMA_VERSION
