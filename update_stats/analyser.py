"""Log analyser: scans request logs and saves per-day statistics.

The scan is a small state machine over calendar days: records are staged
in a DaySummary until a record from a different UTC day shows up, at which
point the staged day is flushed to the database in one transaction and a
new day is opened. The last open day is flushed when the scan stops.

Input must be in chronological order. The first record at or after the
``to`` bound ends the whole scan, so out-of-order logs give wrong results.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from update_stats.combinations import DEFAULT_COMBINATIONS, summarize_combinations
from update_stats.date_range import DAY_IN_SECONDS, as_timestamp, utc_date
from update_stats.errors import ConfigurationError, ParseError, TooManyConsecutiveBadLines
from update_stats.locator import find_first_entry_by_timestamp
from update_stats.parser import parse_line
from update_stats.progress import ProgressReporter
from update_stats.reader import MultiFileReader, sort_by_first_timestamp
from update_stats.store import StatsDatabase
from update_stats.summary import DaySummary

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_BAD_LINES = 30

# Daily stats are generated for these request parameters.
DEFAULT_METRICS = (
    "installed_version", "cms", "cms_version", "php_version", "action",
    "cms_version_aggregate", "php_version_aggregate",
)


@dataclass
class ParseResult:
    found_start: bool = True
    lines_read: int = 0
    records: int = 0
    bad_lines: int = 0
    reached_end_bound: bool = False
    days_flushed: list[str] = field(default_factory=list)


def _format_ts(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S %z")


class LogAnalyser:
    """Drives one or more chronologically ordered log files into a StatsDatabase."""

    def __init__(
        self,
        file_names: list[str] | str,
        database: StatsDatabase,
        metrics: tuple[str, ...] = DEFAULT_METRICS,
        combinations: tuple[tuple[str, str], ...] = DEFAULT_COMBINATIONS,
        max_consecutive_bad_lines: int = MAX_CONSECUTIVE_BAD_LINES,
        progress: ProgressReporter | None = None,
    ):
        if isinstance(file_names, str):
            file_names = [file_names]
        if not file_names:
            raise ConfigurationError("You must specify at least one log file.")

        self._files = sort_by_first_timestamp(list(file_names))
        self._database = database
        self._summary = DaySummary(list(metrics), list(combinations))
        self._max_bad_lines = max_consecutive_bad_lines
        self._progress = progress or ProgressReporter(enabled=False)

        # Line numbers count from the first processed entry, not the file start.
        self.current_line_number = 0
        self.consecutive_bad_lines = 0

    @property
    def files(self) -> list[str]:
        return list(self._files)

    def get_last_processed_date(self) -> str | None:
        return self._database.last_processed_date()

    def parse(self, from_timestamp=None, to_timestamp=None,
              ignore_consecutive_errors: bool = False) -> ParseResult:
        """Analyse the logs and save statistics for every day encountered.

        *from_timestamp* and *to_timestamp* (unix time, date or
        ``YYYY-MM-DD`` string) restrict the scan to ``[from, to)``.
        Raises TooManyConsecutiveBadLines after flushing the open day when
        the bad-line safeguard trips and *ignore_consecutive_errors* is off.
        """
        start = as_timestamp(from_timestamp)
        end = as_timestamp(to_timestamp)

        result = ParseResult()
        self._summary.clear()
        self.current_line_number = 0
        self.consecutive_bad_lines = 0

        with MultiFileReader(self._files) as reader:
            if start is not None:
                logger.info(
                    "Searching for the first entry with a timestamp equal or greater than %s",
                    _format_ts(start),
                )
                offset = find_first_entry_by_timestamp(reader, start)
                if offset is None:
                    logger.info("There are no log entries matching that timestamp.")
                    result.found_start = False
                    return result
                logger.info("Found an entry with a timestamp >= %s at offset %d.",
                            _format_ts(start), offset)
                reader.seek(offset)

            failure = self._scan(reader, start, end, ignore_consecutive_errors, result)

        self._flush_day(result)
        if failure is not None:
            raise failure

        logger.info("Done. %d records, %d bad lines, %d days saved.",
                    result.records, result.bad_lines, len(result.days_flushed))
        return result

    def _scan(self, reader: MultiFileReader, start: int | None, end: int | None,
              ignore_consecutive_errors: bool,
              result: ParseResult) -> TooManyConsecutiveBadLines | None:
        for line in reader:
            self.current_line_number += 1
            result.lines_read += 1

            try:
                record = parse_line(line, self.current_line_number)
            except ParseError as exc:
                result.bad_lines += 1
                self.consecutive_bad_lines += 1
                logger.warning("%s", exc)
                if (not ignore_consecutive_errors
                        and self.consecutive_bad_lines > self._max_bad_lines):
                    logger.error("Parsing was stopped. Use --ignore-bad-lines "
                                 "to disable this safeguard.")
                    return TooManyConsecutiveBadLines(
                        self.current_line_number, self.consecutive_bad_lines
                    )
                continue

            self.consecutive_bad_lines = 0

            if start is not None and record.timestamp < start:
                continue
            # Sorted input: nothing after this entry can be in range either.
            if end is not None and record.timestamp >= end:
                result.reached_end_bound = True
                break

            date = utc_date(record.timestamp)
            if date != self._summary.date:
                self._flush_day(result)
                self._summary.open(date)
                self._progress.day_started(date)

            self._summary.record(record)
            result.records += 1
            self._progress.hour_reached((record.timestamp % DAY_IN_SECONDS) // 3600)

        return None

    def _flush_day(self, result: ParseResult) -> None:
        summary = self._summary
        if summary.date is None:
            return

        started = time.perf_counter()
        combinations = list(summarize_combinations(summary))
        self._database.flush_day(summary, combinations)
        elapsed = time.perf_counter() - started

        result.days_flushed.append(summary.date)
        self._progress.day_flushed(summary.date, summary.line_count, elapsed)
        summary.clear()
