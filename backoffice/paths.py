from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "BACKOFFICE_HOME"
APP_ENV_DB = "BACKOFFICE_DB"


def app_home() -> Path:
    """
    User-writable home for the back office.
    Override with BACKOFFICE_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".backoffice").resolve()


def config_dir() -> Path:
    d = app_home() / "config"
    d.mkdir(parents=True, exist_ok=True)
    return d


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path.

    Resolution order:
    1. BACKOFFICE_DB env var (explicit override)
    2. ~/.backoffice/data/backoffice.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "backoffice.db"
