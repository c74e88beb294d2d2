"""
Tests for configuration loading and path resolution.
"""

from pathlib import Path

from backoffice import config, paths
from backoffice.db import get_db_path


class TestPaths:
    def test_home_follows_env(self, isolated_home):
        assert paths.app_home() == isolated_home.resolve()
        assert paths.config_dir().is_dir()

    def test_db_override(self, tmp_path, monkeypatch):
        target = tmp_path / "other.db"
        monkeypatch.setenv("BACKOFFICE_DB", str(target))
        assert Path(get_db_path()) == target.resolve()

    def test_default_db_under_home(self, isolated_home):
        assert paths.db_path() == isolated_home.resolve() / "data" / "backoffice.db"


class TestYamlConfig:
    def test_missing_file_is_empty(self, tmp_path):
        assert config.load_yaml_config("nope.yaml", tmp_path) == {}

    def test_broken_yaml_is_empty(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("reminder_interval_minutes: [unclosed\n")
        assert config.load_yaml_config("bad.yaml", tmp_path) == {}

    def test_non_mapping_is_ignored(self, tmp_path):
        (tmp_path / "list.yaml").write_text("- 1\n- 2\n")
        assert config.load_yaml_config("list.yaml", tmp_path) == {}

    def test_timekeeping_defaults(self, tmp_path):
        settings = config.timekeeping_settings(tmp_path)
        assert settings == {
            "reminder_interval_minutes": config.REMINDER_INTERVAL_MINUTES,
            "min_reminder_delay_seconds": config.MIN_REMINDER_DELAY_SECONDS,
            "duration_decimal_places": config.DURATION_DECIMAL_PLACES,
        }

    def test_timekeeping_override(self, tmp_path):
        (tmp_path / "timekeeping.yaml").write_text(
            "reminder_interval_minutes: 15\nduration_decimal_places: 3\n"
        )
        settings = config.timekeeping_settings(tmp_path)
        assert settings["reminder_interval_minutes"] == 15
        assert settings["duration_decimal_places"] == 3
        assert settings["min_reminder_delay_seconds"] == config.MIN_REMINDER_DELAY_SECONDS

    def test_compliance_override(self, tmp_path):
        (tmp_path / "compliance.yaml").write_text("due_soon_days: 14\n")
        settings = config.compliance_settings(tmp_path)
        assert settings["due_soon_days"] == 14
        assert settings["filed_window_days"] == config.FILED_WINDOW_DAYS

    def test_controller_reads_home_config(self, isolated_home):
        from backoffice.time_tracking import (
            InMemoryTimeEntryRepository,
            StaticConfirmation,
            TimerController,
        )
        from tests.fixtures import ManualScheduler

        (paths.config_dir() / "timekeeping.yaml").write_text("reminder_interval_minutes: 10\n")
        ctl = TimerController(
            "alice",
            InMemoryTimeEntryRepository(),
            StaticConfirmation(),
            scheduler=ManualScheduler(),
        )
        assert ctl.reminder_interval.total_seconds() == 600
