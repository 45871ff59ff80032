"""Read-only report for one slug over a date range."""

from functools import cmp_to_key
from typing import Callable

from update_stats.chart_data import ChartData
from update_stats.date_range import DateRange
from update_stats.store import StatsDatabase
from update_stats.versions import version_compare, version_key_desc


def _compare_names_desc(left: str, right: str) -> int:
    a, b = left.lower(), right.lower()
    return (a < b) - (a > b)


class Report:
    """Charts and headline numbers for a slug.

    Every chart is computed at most once per Report instance.
    """

    def __init__(
        self,
        database: StatsDatabase,
        slug: str,
        date_range: DateRange | None = None,
        other_group_fraction: float = 0.15,
        group_day_threshold: float = 0.10,
    ):
        self._database = database
        self._slug = slug
        self._date_range = date_range or DateRange()
        self._other_group_fraction = other_group_fraction
        self._group_day_threshold = group_day_threshold
        self._cache: dict[str, object] = {}

    @property
    def slug(self) -> str:
        return self._slug

    @property
    def date_range(self) -> DateRange:
        return self._date_range

    def _cached(self, key: str, compute: Callable):
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def get_chart(
        self,
        metric: str,
        sort_key: Callable | None = None,
        line_value_column: str = "unique_sites",
        other_group_fraction: float | None = None,
        group_day_threshold: float | None = None,
    ) -> ChartData:
        rows = self._database.metric_rows(
            self._slug, metric,
            self._date_range.start_date(), self._date_range.end_date(),
        )
        return ChartData(
            rows,
            self._date_range,
            line_value_column=line_value_column,
            sort_key=sort_key,
            other_group_fraction=(
                self._other_group_fraction if other_group_fraction is None else other_group_fraction
            ),
            group_day_threshold=(
                self._group_day_threshold if group_day_threshold is None else group_day_threshold
            ),
        )

    def active_version_chart(self) -> ChartData:
        return self._cached("active_versions", lambda: self.get_chart(
            "installed_version", version_key_desc))

    def cms_version_chart(self) -> ChartData:
        return self._cached("cms_versions", lambda: self.get_chart(
            "cms_version_aggregate", version_key_desc, group_day_threshold=0.09))

    def php_version_chart(self) -> ChartData:
        return self._cached("php_versions", lambda: self.get_chart(
            "php_version_aggregate", version_key_desc))

    def request_chart(self) -> ChartData:
        return self._cached("requests", lambda: self.get_chart(
            "action", cmp_to_key(_compare_names_desc), "requests", other_group_fraction=0))

    def active_installs_chart(self) -> ChartData:
        return self._cached("active_installs", lambda: self.get_chart(
            "total_hits").rename_empty_value_series("Unique sites"))

    def total_requests(self) -> int:
        return self._cached("total_requests", lambda: sum(
            self.request_chart().totals_by_date.values()))

    def active_installs(self, days: int = 7) -> float:
        """Average number of active installs over the last *days* days."""
        if days <= 0:
            raise ValueError("The number of days must be an integer greater than zero")
        totals = list(self.active_installs_chart().totals_by_date.values())
        return sum(totals[-days:]) / days

    def installs_per_day(self) -> float:
        totals = self.active_installs_chart().totals_by_date
        # A trend needs at least two data points.
        if len(totals) <= 1:
            return 0
        first = totals.get(self._date_range.start_date(), 0)
        last = totals.get(self._date_range.end_date(), 0)
        return (last - first) / len(totals)

    def requests_per_site(self) -> float:
        uniques = sum(self.active_installs_chart().totals_by_date.values())
        requests = self.total_requests()
        if uniques > 0 and requests > 0:
            return requests / uniques
        return 0

    def version_combinations(self, metric1: str, metric2: str, limit: int = 10) -> list[dict]:
        """Percentiles for the last day of the range, newest metric1 value first."""
        rows = self._database.version_combinations(
            self._slug, self._date_range.end_date(), metric1, metric2, limit,
        )
        return sorted(rows, key=cmp_to_key(
            lambda a, b: -version_compare(a["metric1_value"], b["metric1_value"])))
