"""Inclusive UTC day interval and timestamp coercion helpers."""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import cached_property

from update_stats.errors import ConfigurationError

DAY_IN_SECONDS = 24 * 3600

_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")


def as_timestamp(value) -> int | None:
    """Coerce *value* to a unix timestamp.

    Accepts None, an int, a ``date``/``datetime`` or a
    ``YYYY-MM-DD[ HH:MM:SS]`` string. Naive values are taken as UTC.
    """
    if value is None or isinstance(value, int):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    if isinstance(value, date):
        return int(datetime.combine(value, time(), tzinfo=timezone.utc).timestamp())
    if isinstance(value, str):
        text = value.strip()
        if text.upper().endswith(" UTC"):
            text = text[:-4].rstrip()
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
            except ValueError:
                continue
            return int(parsed.replace(tzinfo=timezone.utc).timestamp())
    raise ConfigurationError(
        f'"{value}" is not a valid date. Expected format: YYYY-MM-DD'
    )


def utc_date(timestamp: int) -> str:
    """Format a unix timestamp as a ``YYYY-MM-DD`` UTC day key."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


def _yesterday_timestamp() -> int:
    today = datetime.now(timezone.utc).date()
    return as_timestamp(today - timedelta(days=1))


@dataclass(frozen=True)
class DateRange:
    """A range of whole UTC days. ``start <= end`` always holds."""

    start: int
    end: int

    def __init__(self, start=None, end=None):
        end_ts = as_timestamp(end) if end not in (None, "") else None
        if not end_ts:
            end_ts = _yesterday_timestamp()
        start_ts = as_timestamp(start) if start not in (None, "") else None
        if not start_ts:
            start_ts = end_ts - 31 * DAY_IN_SECONDS

        object.__setattr__(self, "start", min(start_ts, end_ts))
        object.__setattr__(self, "end", max(start_ts, end_ts))

    @property
    def day_count(self) -> int:
        return int(math.ceil((self.end - self.start) / DAY_IN_SECONDS))

    @property
    def duration(self) -> int:
        return self.end - self.start

    @cached_property
    def date_keys(self) -> list[str]:
        """Every day in the range as ``YYYY-MM-DD``, both ends included."""
        return [
            utc_date(ts)
            for ts in range(self.start, self.end + 1, DAY_IN_SECONDS)
        ]

    def start_date(self, fmt: str = "%Y-%m-%d") -> str:
        return datetime.fromtimestamp(self.start, tz=timezone.utc).strftime(fmt)

    def end_date(self, fmt: str = "%Y-%m-%d") -> str:
        return datetime.fromtimestamp(self.end, tz=timezone.utc).strftime(fmt)
