"""Chart tables built from daily stats rows.

Rare values are folded into an "Other" series so charts stay readable. A
value may only be folded if it stays below ``group_day_threshold`` of the
daily total on every day, and folding stops before the "Other" series
would exceed ``other_group_fraction`` of all events.
"""

from datetime import datetime
from typing import Callable, Iterable

from update_stats.date_range import DateRange

OTHER = "Other"
NO_DATA = "No data"


class ChartData:
    def __init__(
        self,
        rows: Iterable[dict],
        date_range: DateRange,
        line_value_column: str = "unique_sites",
        sort_key: Callable | None = None,
        other_group_fraction: float = 0.20,
        group_day_threshold: float = 0.09,
        max_series: int | None = None,
    ):
        self._date_range = date_range

        data: dict[str, dict[str, int]] = {}
        totals_by_key: dict[str, int] = {}
        totals_by_date = dict.fromkeys(date_range.date_keys, 0)
        for row in rows:
            key = row["value"]
            count = int(row[line_value_column])
            data.setdefault(key, {})[row["datestamp"]] = count
            totals_by_key[key] = totals_by_key.get(key, 0) + count
            totals_by_date[row["datestamp"]] = totals_by_date.get(row["datestamp"], 0) + count
        self._totals_by_date = totals_by_date

        can_group = {
            key: all(
                _share(count, totals_by_date[day]) < group_day_threshold
                for day, count in by_date.items()
            )
            for key, by_date in data.items()
        }

        # Least common first.
        grand_total = sum(totals_by_key.values())
        grouped_total = 0
        grouped: dict[str, int] = {}
        for key, key_total in sorted(totals_by_key.items(), key=lambda item: item[1]):
            if grand_total == 0:
                break
            if max_series is not None and len(data) + (1 if grouped else 0) <= max_series:
                break
            if not can_group[key]:
                continue
            if (grouped_total + key_total) / grand_total > other_group_fraction:
                break
            grouped_total += key_total
            for day, count in data.pop(key).items():
                grouped[day] = grouped.get(day, 0) + count

        if grouped_total > 0:
            data[OTHER] = grouped

        if sort_key is not None:
            data = {key: data[key] for key in sorted(data, key=sort_key)}

        if not data:
            data[NO_DATA] = dict.fromkeys(date_range.date_keys, 0)

        self._series = data

    @property
    def series(self) -> dict[str, dict[str, int]]:
        return self._series

    @property
    def totals_by_date(self) -> dict[str, int]:
        return dict(self._totals_by_date)

    def rename_empty_value_series(self, name: str) -> "ChartData":
        """Give the empty-value series (e.g. total_hits) a readable name."""
        if "" in self._series:
            self._series = {
                (name if key == "" else key): value for key, value in self._series.items()
            }
        return self

    def get_area_chart_data(self) -> list[list]:
        """One header row, then one row per day with a column per series."""
        rows = [[{"label": "Date", "type": "date"}] + list(self._series)]
        for day in self._date_range.date_keys:
            dt = datetime.strptime(day, "%Y-%m-%d")
            row = [f"Date({dt.year}, {dt.month - 1}, {dt.day:02d})"]
            row.extend(by_date.get(day, 0) for by_date in self._series.values())
            rows.append(row)
        return rows

    def get_pie_chart_data(self, label: str = "Value", day_index: int = -1) -> list[list]:
        """Per-series counts for one day, most recent by default."""
        days = list(self._totals_by_date)
        day = days[day_index] if days else None

        rows = [[key, by_date.get(day, 0)] for key, by_date in self._series.items()]
        rows.reverse()
        if all(count == 0 for _, count in rows):
            rows = [[NO_DATA, 0]]
        return [["Date", label]] + rows


def _share(count: int, total: int) -> float:
    return count / total if total > 0 else 0
