"""Tests for update_stats/locator.py"""

import pytest

from update_stats.date_range import as_timestamp
from update_stats.errors import ParseError
from update_stats.locator import find_first_entry_by_timestamp
from update_stats.parser import parse_line
from update_stats.reader import MultiFileReader

TIMES = [
    "2024-01-01 00:00:00",
    "2024-01-01 06:00:00",
    "2024-01-01 12:00:00",
    "2024-01-01 18:00:00",
    "2024-01-02 00:00:00",
    "2024-01-02 00:00:00",
    "2024-01-02 09:30:00",
    "2024-01-03 23:59:59",
]


def _entries(lines: list[str]) -> list[tuple[int, int | None]]:
    """(offset, timestamp or None for malformed) for every line."""
    entries = []
    offset = 0
    for line in lines:
        try:
            timestamp = parse_line(line).timestamp
        except ParseError:
            timestamp = None
        entries.append((offset, timestamp))
        offset += len(line.encode("utf-8"))
    return entries


def _assert_first_match(lines: list[str], offset: int | None, target: int) -> None:
    entries = _entries(lines)
    valid = [(o, ts) for o, ts in entries if ts is not None]
    expected = next((o for o, ts in valid if ts >= target), None)
    if expected is None:
        assert offset is None
        return
    assert offset == expected


@pytest.fixture
def lines(make_line):
    return [make_line(t) for t in TIMES]


class TestFindFirstEntry:
    @pytest.mark.parametrize("target", [
        "2023-12-31 00:00:00",
        "2024-01-01 00:00:00",
        "2024-01-01 00:00:01",
        "2024-01-01 12:00:00",
        "2024-01-01 23:00:00",
        "2024-01-02 00:00:00",
        "2024-01-02 09:29:59",
        "2024-01-03 23:59:59",
    ])
    def test_single_file(self, write_log, lines, target):
        with MultiFileReader([write_log("a.log", lines)]) as reader:
            target_ts = as_timestamp(target)
            offset = find_first_entry_by_timestamp(reader, target_ts)
            _assert_first_match(lines, offset, target_ts)

    def test_exact_match_offset(self, write_log, lines):
        with MultiFileReader([write_log("a.log", lines)]) as reader:
            offset = find_first_entry_by_timestamp(reader, as_timestamp("2024-01-01 12:00:00"))
            assert offset == len("".join(lines[:2]))

    def test_duplicates_return_first(self, write_log, lines):
        with MultiFileReader([write_log("a.log", lines)]) as reader:
            offset = find_first_entry_by_timestamp(reader, as_timestamp("2024-01-02"))
            assert offset == len("".join(lines[:4]))

    def test_before_everything_is_zero(self, write_log, lines):
        with MultiFileReader([write_log("a.log", lines)]) as reader:
            assert find_first_entry_by_timestamp(reader, as_timestamp("2020-01-01")) == 0

    def test_after_everything_is_none(self, write_log, lines):
        with MultiFileReader([write_log("a.log", lines)]) as reader:
            assert find_first_entry_by_timestamp(reader, as_timestamp("2024-02-01")) is None

    def test_empty_stream(self, write_log):
        with MultiFileReader([write_log("empty.log", [])]) as reader:
            assert find_first_entry_by_timestamp(reader, 0) is None

    def test_restores_position(self, write_log, lines):
        with MultiFileReader([write_log("a.log", lines)]) as reader:
            reader.seek(10)
            find_first_entry_by_timestamp(reader, as_timestamp("2024-01-02"))
            assert reader.tell() == 10

    @pytest.mark.parametrize("target", [
        "2024-01-01 00:00:00",
        "2024-01-01 13:00:00",
        "2024-01-02 00:00:00",
        "2024-01-03 00:00:00",
        "2024-01-04 00:00:00",
    ])
    def test_across_files(self, write_log, lines, target):
        paths = [write_log("a.log", lines[:3]), write_log("b.log", lines[3:])]
        with MultiFileReader(paths) as reader:
            target_ts = as_timestamp(target)
            offset = find_first_entry_by_timestamp(reader, target_ts)
            _assert_first_match(lines, offset, target_ts)

    @pytest.mark.parametrize("target", [
        "2023-12-31 00:00:00",
        "2024-01-01 07:00:00",
        "2024-01-01 18:00:00",
        "2024-01-02 05:00:00",
        "2024-01-03 00:00:00",
    ])
    def test_skips_malformed_lines(self, write_log, lines, target):
        noisy = ["garbage\n"]
        for line in lines:
            noisy += [line, "not a log line\n"]
        with MultiFileReader([write_log("noisy.log", noisy)]) as reader:
            target_ts = as_timestamp(target)
            offset = find_first_entry_by_timestamp(reader, target_ts)
            _assert_first_match(noisy, offset, target_ts)

    def test_trailing_garbage_after_last_entry(self, write_log, lines):
        noisy = lines[:2] + ["garbage\n"]
        with MultiFileReader([write_log("noisy.log", noisy)]) as reader:
            assert find_first_entry_by_timestamp(reader, as_timestamp("2024-02-01")) is None

    def test_trailing_blank_and_garbage_lines(self, write_log, lines):
        noisy = lines + ["\n", "garbage\n"] * 20
        with MultiFileReader([write_log("noisy.log", noisy)]) as reader:
            assert find_first_entry_by_timestamp(reader, as_timestamp("2024-02-01")) is None

    def test_never_returns_a_malformed_line(self, write_log, lines):
        noisy = lines[:3] + ["garbage\n"] * 3 + lines[3:]
        with MultiFileReader([write_log("noisy.log", noisy)]) as reader:
            offset = find_first_entry_by_timestamp(reader, as_timestamp("2024-01-01 13:00:00"))
            assert offset == len("".join(noisy[:6]))
