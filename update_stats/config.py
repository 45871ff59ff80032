"""Configuration loading from an optional YAML file, env vars and CLI args."""

import logging
import os
from dataclasses import dataclass

import yaml

from update_stats.analyser import DEFAULT_METRICS, MAX_CONSECUTIVE_BAD_LINES
from update_stats.combinations import DEFAULT_COMBINATIONS
from update_stats.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Request record columns that can be counted.
KNOWN_METRICS = frozenset(DEFAULT_METRICS) | {"locale", "http_method"}
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    database: str = "stats.db3"
    enabled_metrics: tuple = DEFAULT_METRICS
    combinations: tuple = DEFAULT_COMBINATIONS
    max_consecutive_bad_lines: int = MAX_CONSECUTIVE_BAD_LINES
    log_level: str = "INFO"
    show_progress: bool = True
    other_group_fraction: float = 0.15
    group_day_threshold: float = 0.10


def load_yaml_config(path: str | None) -> dict:
    """Read the YAML config file. Returns an empty dict if there is none.

    The ``CONFIG_PATH`` environment variable wins over *path*.
    """
    path = os.environ.get("CONFIG_PATH", path)
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    logger.info("Loaded YAML config from %s", path)
    return data


def _metrics(raw) -> tuple:
    metrics = tuple(raw)
    for metric in metrics:
        if metric not in KNOWN_METRICS:
            raise ConfigurationError(f"Unknown metric: {metric}")
    return metrics


def _combinations(raw) -> tuple:
    pairs = []
    for pair in raw:
        if len(pair) != 2:
            raise ConfigurationError(f"A combination needs exactly two metrics, got {pair!r}")
        for metric in pair:
            if metric not in KNOWN_METRICS:
                raise ConfigurationError(f"Unknown metric in combination: {metric}")
        pairs.append((pair[0], pair[1]))
    return tuple(pairs)


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config from defaults <- YAML <- env vars <- CLI args."""
    yaml_data = yaml_data or {}
    defaults = Config()

    database = yaml_data.get("database", defaults.database)
    database = os.environ.get("STATS_DB", database)
    if cli_args is not None and getattr(cli_args, "database", None):
        database = cli_args.database

    raw_bad_lines = os.environ.get(
        "MAX_BAD_LINES",
        yaml_data.get("max_consecutive_bad_lines", defaults.max_consecutive_bad_lines),
    )
    try:
        bad_lines = int(raw_bad_lines)
    except (TypeError, ValueError):
        raise ConfigurationError(f"max_consecutive_bad_lines must be an integer, got {raw_bad_lines!r}")
    if bad_lines <= 0:
        raise ConfigurationError("max_consecutive_bad_lines must be greater than zero")

    show_progress = _parse_bool(os.environ.get(
        "SHOW_PROGRESS", yaml_data.get("show_progress", defaults.show_progress)))
    if cli_args is not None and getattr(cli_args, "quiet", False):
        show_progress = False

    log_level = str(os.environ.get("LOG_LEVEL", yaml_data.get("log_level", defaults.log_level))).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level: {log_level}")

    charts = yaml_data.get("charts", {}) or {}

    return Config(
        database=database,
        enabled_metrics=_metrics(yaml_data.get("enabled_metrics", defaults.enabled_metrics)),
        combinations=_combinations(yaml_data.get("combinations", defaults.combinations)),
        max_consecutive_bad_lines=bad_lines,
        log_level=log_level,
        show_progress=show_progress,
        other_group_fraction=float(charts.get("other_group_fraction", defaults.other_group_fraction)),
        group_day_threshold=float(charts.get("group_day_threshold", defaults.group_day_threshold)),
    )
