"""Tests for update_stats/date_range.py"""

import dataclasses
from datetime import date, datetime, timedelta, timezone

import pytest

from update_stats.date_range import DAY_IN_SECONDS, DateRange, as_timestamp, utc_date
from update_stats.errors import ConfigurationError

JAN_1 = 1704067200  # 2024-01-01 00:00:00 UTC


class TestAsTimestamp:
    def test_none_passes_through(self):
        assert as_timestamp(None) is None

    def test_int_passes_through(self):
        assert as_timestamp(JAN_1) == JAN_1

    def test_date_string(self):
        assert as_timestamp("2024-01-01") == JAN_1

    def test_datetime_string(self):
        assert as_timestamp("2024-01-01 12:00:00") == JAN_1 + 12 * 3600

    def test_iso_t_separator(self):
        assert as_timestamp("2024-01-01T00:00:30") == JAN_1 + 30

    def test_utc_suffix(self):
        assert as_timestamp("2024-01-01 00:00:00 UTC") == JAN_1

    def test_date_object(self):
        assert as_timestamp(date(2024, 1, 1)) == JAN_1

    def test_naive_datetime_is_utc(self):
        assert as_timestamp(datetime(2024, 1, 1)) == JAN_1

    def test_aware_datetime(self):
        tz = timezone(timedelta(hours=2))
        assert as_timestamp(datetime(2024, 1, 1, 2, 0, tzinfo=tz)) == JAN_1

    @pytest.mark.parametrize("value", ["01/02/2024", "yesterday", "2024-13-01", 1.5])
    def test_invalid_raises(self, value):
        with pytest.raises(ConfigurationError):
            as_timestamp(value)


class TestUtcDate:
    def test_start_of_day(self):
        assert utc_date(JAN_1) == "2024-01-01"

    def test_last_second_of_day(self):
        assert utc_date(JAN_1 + DAY_IN_SECONDS - 1) == "2024-01-01"

    def test_next_day(self):
        assert utc_date(JAN_1 + DAY_IN_SECONDS) == "2024-01-02"


class TestDateRange:
    def test_date_keys_inclusive(self):
        dr = DateRange("2024-01-01", "2024-01-03")
        assert dr.date_keys == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_single_day(self):
        dr = DateRange("2024-01-01", "2024-01-01")
        assert dr.date_keys == ["2024-01-01"]
        assert dr.day_count == 0

    def test_reversed_bounds_are_swapped(self):
        dr = DateRange("2024-01-03", "2024-01-01")
        assert dr.start == JAN_1
        assert dr.start_date() == "2024-01-01"
        assert dr.end_date() == "2024-01-03"

    def test_day_count_and_duration(self):
        dr = DateRange("2024-01-01", "2024-01-03")
        assert dr.day_count == 2
        assert dr.duration == 2 * DAY_IN_SECONDS

    def test_custom_date_format(self):
        dr = DateRange("2024-01-01", "2024-01-03")
        assert dr.start_date("%d.%m.%Y") == "01.01.2024"

    def test_defaults_end_yesterday(self):
        yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
        dr = DateRange()
        assert dr.end_date() == yesterday.isoformat()
        assert dr.start_date() == (yesterday - timedelta(days=31)).isoformat()
        assert len(dr.date_keys) == 32

    def test_empty_strings_use_defaults(self):
        assert DateRange("", "") == DateRange()

    def test_frozen(self):
        dr = DateRange("2024-01-01", "2024-01-02")
        with pytest.raises(dataclasses.FrozenInstanceError):
            dr.start = 0

    def test_date_keys_cached_per_instance(self):
        first = DateRange("2024-01-01", "2024-01-02")
        second = DateRange("2024-01-05", "2024-01-06")
        assert first.date_keys is first.date_keys
        assert second.date_keys == ["2024-01-05", "2024-01-06"]
