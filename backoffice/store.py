"""
Store - the shared persistence handle for the back office core.

Repositories in compliance/, time_tracking/ and scheduling/ read and write
through here. SQLite for persistence, one connection per operation so the
store can be shared across threads.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from backoffice import db as db_module
from backoffice import safe_sql

logger = logging.getLogger(__name__)


def _encode(value: Any) -> Any:
    if isinstance(value, dict | list):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


class Store:
    """
    Database handle. Every repository connects through here.

    Writes use plain INSERT so storage-level UNIQUE constraints surface as
    sqlite3.IntegrityError to the caller.
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = str(db_path or db_module.get_db_path())
        logger.info("Store initializing with DB: %s", self.db_path)
        db_module.ensure_schema(self.db_path)

    @contextmanager
    def _get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        """Thread-safe connection context."""
        with db_module.get_connection(self.db_path) as conn:
            yield conn

    # ==================== CRUD Operations ====================

    def insert(self, table: str, data: dict) -> str:
        """Insert a row. Returns ID."""
        columns = list(data.keys())
        values = [_encode(v) for v in data.values()]

        with self._get_conn() as conn:
            conn.execute(safe_sql.insert(table, columns), values)

        return data.get("id", "")

    def insert_many(self, table: str, items: list[dict]) -> int:
        """Insert multiple rows in one transaction. Returns count."""
        if not items:
            return 0

        columns = list(items[0].keys())
        sql = safe_sql.insert(table, columns)

        with self._get_conn() as conn:
            for item in items:
                conn.execute(sql, [_encode(item[c]) for c in columns])

        return len(items)

    def get(self, table: str, id: str) -> dict | None:
        """Get a single row by ID."""
        with self._get_conn() as conn:
            row = conn.execute(safe_sql.select(table, where="id = ?"), [id]).fetchone()
            return dict(row) if row else None

    def update(self, table: str, id: str, data: dict) -> bool:
        """Update a row. Returns False when no row matched."""
        if not data:
            return False

        values = [_encode(v) for v in data.values()]
        values.append(id)

        with self._get_conn() as conn:
            result = conn.execute(safe_sql.update(table, list(data.keys())), values)
            return result.rowcount > 0

    def query(self, sql: str, params: list | None = None) -> list[dict]:
        """Execute raw query. Returns list of dicts."""
        with self._get_conn() as conn:
            rows = conn.execute(sql, params or []).fetchall()
            return [dict(row) for row in rows]


_stores: dict[str, Store] = {}
_stores_lock = threading.Lock()


def get_store(db_path: str | Path | None = None) -> Store:
    """Get the shared store for a database path (one per path)."""
    key = str(db_path or db_module.get_db_path())
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = Store(key)
            _stores[key] = store
        return store
