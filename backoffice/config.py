"""
Centralized configuration for the back office core.

All values that vary by deployment belong here.
Override via environment variables where marked, or via YAML files in
paths.config_dir() (timekeeping.yaml, compliance.yaml).
"""

import logging
import os
from pathlib import Path

import yaml

from backoffice import paths

logger = logging.getLogger(__name__)

# ============================================================
# Compliance
# ============================================================

DUE_SOON_DAYS: int = int(os.environ.get("BACKOFFICE_DUE_SOON_DAYS", "30"))
"""A due date this many days away (or fewer) is DueSoon rather than OnTime."""

FILED_WINDOW_DAYS: float = float(os.environ.get("BACKOFFICE_FILED_WINDOW_DAYS", "365.25"))
"""A filing younger than this counts for the current cycle."""

# ============================================================
# Timekeeping
# ============================================================

REMINDER_INTERVAL_MINUTES: int = int(os.environ.get("BACKOFFICE_REMINDER_MINUTES", "30"))
"""Minutes between 'still running?' prompts, measured from the timer start."""

MIN_REMINDER_DELAY_SECONDS: float = float(os.environ.get("BACKOFFICE_MIN_REMINDER_DELAY", "1"))
"""Floor for the first reminder delay after a restore lands on a boundary."""

DURATION_DECIMAL_PLACES: int = int(os.environ.get("BACKOFFICE_DURATION_PLACES", "2"))
"""Billed duration_hours precision."""

DEFAULT_HOURLY_RATE: str | None = os.environ.get("BACKOFFICE_DEFAULT_HOURLY_RATE")
"""Hourly rate stamped on new timer entries when the caller passes none."""

# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("BACKOFFICE_LOG_LEVEL", "INFO")
"""Root log level for configure_logging()."""

LOG_JSON: str | None = os.environ.get("BACKOFFICE_LOG_JSON")
"""'1' forces JSON logs, '0' forces human logs, unset auto-detects."""


def load_yaml_config(name: str, config_dir: Path | None = None) -> dict:
    """Load an optional YAML override file, return empty dict when absent or broken."""
    config_path = (config_dir or paths.config_dir()) / name
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.error("Failed to load config %s: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: expected a mapping, got %s", config_path, type(data).__name__)
        return {}
    return data


def timekeeping_settings(config_dir: Path | None = None) -> dict:
    """Reminder settings, env defaults overlaid with timekeeping.yaml."""
    overrides = load_yaml_config("timekeeping.yaml", config_dir)
    return {
        "reminder_interval_minutes": int(
            overrides.get("reminder_interval_minutes", REMINDER_INTERVAL_MINUTES)
        ),
        "min_reminder_delay_seconds": float(
            overrides.get("min_reminder_delay_seconds", MIN_REMINDER_DELAY_SECONDS)
        ),
        "duration_decimal_places": int(
            overrides.get("duration_decimal_places", DURATION_DECIMAL_PLACES)
        ),
    }


def compliance_settings(config_dir: Path | None = None) -> dict:
    """Classifier thresholds, env defaults overlaid with compliance.yaml."""
    overrides = load_yaml_config("compliance.yaml", config_dir)
    return {
        "due_soon_days": int(overrides.get("due_soon_days", DUE_SOON_DAYS)),
        "filed_window_days": float(overrides.get("filed_window_days", FILED_WINDOW_DAYS)),
    }
