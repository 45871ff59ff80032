"""Percentile summaries for pairs of metrics.

Storing every (platform version, plugin version) combination would take a
lot of space, so for each platform version we only keep the plugin
versions at which the cumulative site count crosses 10%, 50% and 90%.
"""

from dataclasses import dataclass
from typing import Iterator

from update_stats.composite_index import CompositeIndex
from update_stats.summary import DaySummary
from update_stats.versions import version_key

PERCENTILES = (0.1, 0.5, 0.9)

DEFAULT_COMBINATIONS = (
    ("cms_version_aggregate", "installed_version"),
    ("php_version_aggregate", "installed_version"),
)


@dataclass(frozen=True)
class CombinationRow:
    slug: str
    metric1: str
    metric1_value: str
    metric2: str
    percentile10th: str
    percentile50th: str
    percentile90th: str


def compute_percentiles(distribution: dict[str, int]) -> tuple[str, ...]:
    """Values at which the running site count first reaches each percentile.

    *distribution* maps a version to its distinct-site count. Versions are
    walked in ascending version order.
    """
    if not distribution:
        raise ValueError("Cannot compute percentiles of an empty distribution")

    total = sum(distribution.values())
    thresholds = [total * p for p in PERCENTILES]
    found = []
    running = 0
    for version in sorted(distribution, key=version_key):
        running += distribution[version]
        while len(found) < len(thresholds) and running >= thresholds[len(found)]:
            found.append(version)
        if len(found) == len(thresholds):
            break
    return tuple(found)


def summarize_combinations(summary: DaySummary) -> Iterator[CombinationRow]:
    """Yield one CombinationRow per (slug, metric1 value) for every pair."""
    for metric1, metric2 in summary.combinations:
        index = CompositeIndex(4)
        for slug, value1, value2, unique_sites in summary.pair_counts(metric1, metric2):
            index.add(slug, value1, value2, unique_sites)

        for slug, value1, distribution in index.rows(2):
            p10, p50, p90 = compute_percentiles(distribution)
            yield CombinationRow(slug, metric1, value1, metric2, p10, p50, p90)
