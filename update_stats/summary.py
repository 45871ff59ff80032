"""In-memory staging buffer holding one day of request counts."""

from dataclasses import dataclass, field
from typing import Iterator

from update_stats.parser import RequestRecord

TOTAL_HITS = "total_hits"

# Values that never take part in a metric-pair combination.
_EMPTY_VALUES = (None, "", "-")


@dataclass
class MetricCounter:
    requests: int = 0
    sites: set = field(default_factory=set)

    def add(self, site_url: str | None) -> None:
        self.requests += 1
        if site_url is not None:
            self.sites.add(site_url)


@dataclass(frozen=True)
class StatRow:
    slug: str
    metric: str
    value: str | None
    requests: int
    unique_sites: int


class DaySummary:
    """Per-day counts keyed by (slug, metric, value).

    Alongside the per-metric counters it keeps, for every configured
    metric pair, the distinct sites seen for each (slug, value1, value2)
    so that percentiles can be derived at flush time.
    """

    def __init__(self, metrics: list[str], combinations: list[tuple[str, str]]):
        self._metrics = list(metrics)
        self._combinations = [tuple(pair) for pair in combinations]
        self.date: str | None = None
        self.line_count = 0
        self._counters: dict[tuple, MetricCounter] = {}
        self._pairs: dict[tuple[str, str], dict[tuple, set]] = {}
        self.slug_last_seen: dict[str, int] = {}

    @property
    def metrics(self) -> list[str]:
        return list(self._metrics)

    @property
    def combinations(self) -> list[tuple[str, str]]:
        return list(self._combinations)

    def is_empty(self) -> bool:
        return self.line_count == 0

    def open(self, date: str) -> None:
        self.clear()
        self.date = date

    def clear(self) -> None:
        self.date = None
        self.line_count = 0
        self._counters.clear()
        self._pairs.clear()
        self.slug_last_seen.clear()

    def record(self, record: RequestRecord) -> None:
        slug = record.slug
        site = record.site_url
        self.line_count += 1

        previous = self.slug_last_seen.get(slug)
        if previous is None or record.timestamp > previous:
            self.slug_last_seen[slug] = record.timestamp

        for metric in self._metrics:
            key = (slug, metric, record.metric_value(metric))
            self._counters.setdefault(key, MetricCounter()).add(site)
        self._counters.setdefault((slug, TOTAL_HITS, ""), MetricCounter()).add(site)

        if site is None:
            return
        for metric1, metric2 in self._combinations:
            value1 = record.metric_value(metric1)
            value2 = record.metric_value(metric2)
            if value1 in _EMPTY_VALUES or value2 in _EMPTY_VALUES:
                continue
            sites = self._pairs.setdefault((metric1, metric2), {})
            sites.setdefault((slug, value1, value2), set()).add(site)

    def rows(self) -> Iterator[StatRow]:
        for (slug, metric, value), counter in self._counters.items():
            yield StatRow(slug, metric, value, counter.requests, len(counter.sites))

    def pair_counts(self, metric1: str, metric2: str) -> Iterator[tuple[str, str, str, int]]:
        """Yield (slug, value1, value2, unique_sites) for one metric pair."""
        for (slug, value1, value2), sites in self._pairs.get((metric1, metric2), {}).items():
            yield slug, value1, value2, len(sites)
