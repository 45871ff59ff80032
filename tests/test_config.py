"""Tests for update_stats/config.py — Config and its loaders."""

import argparse
import dataclasses
import os

import pytest

from update_stats.analyser import DEFAULT_METRICS
from update_stats.combinations import DEFAULT_COMBINATIONS
from update_stats.config import Config, _parse_bool, load_config, load_yaml_config
from update_stats.errors import ConfigurationError


def _args(**overrides) -> argparse.Namespace:
    values = {"database": None, "quiet": False}
    values.update(overrides)
    return argparse.Namespace(**values)


# ── _parse_bool helper ──────────────────────────────────────────────

class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", " YES ", True])
    def test_truthy_values(self, value):
        assert _parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "", "random", False])
    def test_falsy_values(self, value):
        assert _parse_bool(value) is False


# ── Config defaults ─────────────────────────────────────────────────

class TestConfigDefaults:
    def test_defaults(self):
        cfg = load_config()
        assert cfg.database == "stats.db3"
        assert cfg.enabled_metrics == DEFAULT_METRICS
        assert cfg.combinations == DEFAULT_COMBINATIONS
        assert cfg.max_consecutive_bad_lines == 30
        assert cfg.log_level == "INFO"
        assert cfg.show_progress is True
        assert cfg.other_group_fraction == 0.15
        assert cfg.group_day_threshold == 0.10

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            Config().database = "other.db3"


# ── Precedence ──────────────────────────────────────────────────────

class TestPrecedence:
    def test_yaml_overrides_defaults(self):
        cfg = load_config(None, {
            "database": "yaml.db3",
            "max_consecutive_bad_lines": 5,
            "log_level": "debug",
            "show_progress": False,
            "charts": {"other_group_fraction": 0.2, "group_day_threshold": 0.05},
        })
        assert cfg.database == "yaml.db3"
        assert cfg.max_consecutive_bad_lines == 5
        assert cfg.log_level == "DEBUG"
        assert cfg.show_progress is False
        assert cfg.other_group_fraction == 0.2
        assert cfg.group_day_threshold == 0.05

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("STATS_DB", "env.db3")
        monkeypatch.setenv("MAX_BAD_LINES", "7")
        monkeypatch.setenv("SHOW_PROGRESS", "false")
        monkeypatch.setenv("LOG_LEVEL", "warning")
        cfg = load_config(None, {"database": "yaml.db3", "max_consecutive_bad_lines": 5})
        assert cfg.database == "env.db3"
        assert cfg.max_consecutive_bad_lines == 7
        assert cfg.show_progress is False
        assert cfg.log_level == "WARNING"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("STATS_DB", "env.db3")
        cfg = load_config(_args(database="cli.db3", quiet=True))
        assert cfg.database == "cli.db3"
        assert cfg.show_progress is False

    def test_cli_without_database_keeps_default(self):
        assert load_config(_args()).database == "stats.db3"


# ── Validation ──────────────────────────────────────────────────────

class TestValidation:
    @pytest.mark.parametrize("value", [0, -1])
    def test_bad_line_threshold_must_be_positive(self, value):
        with pytest.raises(ConfigurationError):
            load_config(None, {"max_consecutive_bad_lines": value})

    def test_bad_line_threshold_must_be_int(self, monkeypatch):
        monkeypatch.setenv("MAX_BAD_LINES", "lots")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_unknown_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_custom_metrics(self):
        cfg = load_config(None, {"enabled_metrics": ["action", "locale"]})
        assert cfg.enabled_metrics == ("action", "locale")

    def test_unknown_metric(self):
        with pytest.raises(ConfigurationError):
            load_config(None, {"enabled_metrics": ["action", "favourite_colour"]})

    def test_custom_combinations(self):
        cfg = load_config(None, {"combinations": [["php_version_aggregate", "installed_version"]]})
        assert cfg.combinations == (("php_version_aggregate", "installed_version"),)

    def test_combination_needs_two_metrics(self):
        with pytest.raises(ConfigurationError):
            load_config(None, {"combinations": [["php_version_aggregate"]]})

    def test_combination_with_unknown_metric(self):
        with pytest.raises(ConfigurationError):
            load_config(None, {"combinations": [["php_version_aggregate", "nope"]]})


# ── YAML loading ────────────────────────────────────────────────────

class TestLoadYamlConfig:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "missing.yml")) == {}

    def test_reads_mapping(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("database: from-file.db3\nshow_progress: false\n")
        assert load_yaml_config(str(path)) == {"database": "from-file.db3", "show_progress": False}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("")
        assert load_yaml_config(str(path)) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("database: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_yaml_config(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ConfigurationError):
            load_yaml_config(str(path))

    def test_config_path_env_wins(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yml"
        path.write_text("database: env-file.db3\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))
        assert load_yaml_config(str(tmp_path / "other.yml")) == {"database": "env-file.db3"}

    def test_shipped_config_matches_defaults(self):
        root = os.path.join(os.path.dirname(__file__), "..")
        cfg = load_config(None, load_yaml_config(os.path.join(root, "config.yml")))
        assert cfg == Config()
