"""
Test configuration: ensures repo root is in sys.path + determinism guards.

Every test gets its own BACKOFFICE_HOME so config and data directories never
touch the real ~/.backoffice, and sqlite3.connect refuses the live DB path.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import backoffice.*, cli.*, tests.fixtures
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tests.fixtures import T0, FakeClock, ManualScheduler, create_fixture_db, guard_no_live_db  # noqa: E402

# =============================================================================
# DETERMINISM GUARD: Block live database access
# =============================================================================

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    guard_no_live_db(str(database))
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def guard_live_db_access(monkeypatch):
    """Automatically guard all tests against live DB access."""
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point BACKOFFICE_HOME at a temp dir for every test."""
    home = tmp_path / "home"
    monkeypatch.setenv("BACKOFFICE_HOME", str(home))
    monkeypatch.delenv("BACKOFFICE_DB", raising=False)
    return home


# =============================================================================
# SHARED FIXTURES
# =============================================================================

@pytest.fixture
def store(tmp_path):
    """Fresh fixture DB per test."""
    return create_fixture_db(tmp_path / "fixture_test.db")


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def scheduler():
    return ManualScheduler()
