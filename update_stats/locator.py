"""Binary search a log stream for the first entry at or after a timestamp."""

import io
import logging

from update_stats.errors import ParseError
from update_stats.parser import parse_line
from update_stats.reader import MultiFileReader

logger = logging.getLogger(__name__)


def _first_parseable_timestamp(reader: MultiFileReader) -> int | None:
    """Scan forward until a line parses. None if the stream runs out first."""
    while not reader.eof():
        line = reader.read_line()
        if not line.strip():
            continue
        try:
            return parse_line(line).timestamp
        except ParseError:
            continue
    return None


def find_first_entry_by_timestamp(reader: MultiFileReader, target: int) -> int | None:
    """Offset of the first entry whose timestamp is >= *target*.

    Returns None when the stream is empty or every entry is older than
    *target*. Malformed lines are skipped and never returned; a midpoint
    with nothing parseable after it counts as "too far" so the search
    keeps shrinking towards the start. The reader's position is restored before
    returning.
    """
    original_position = reader.tell()
    try:
        return _search(reader, target)
    finally:
        reader.seek(original_position)


def _search(reader: MultiFileReader, target: int) -> int | None:
    size = reader.seek(0, io.SEEK_END)
    if size == 0:
        return None

    # Every probe discards the line under the cursor, so the first line
    # would never be looked at otherwise.
    reader.seek(0)
    try:
        if parse_line(reader.read_line()).timestamp >= target:
            return 0
    except ParseError:
        logger.debug("First line is malformed, falling back to binary search")

    beginning = 0
    end = size - 1
    while beginning <= end:
        middle = beginning + (end - beginning) // 2
        reader.seek(middle)
        reader.read_line()

        timestamp = _first_parseable_timestamp(reader)
        if timestamp is None or timestamp >= target:
            end = middle - 1
        else:
            beginning = middle + 1

    reader.seek(beginning)
    reader.read_line()
    return _next_entry_at_or_after(reader, target)


def _next_entry_at_or_after(reader: MultiFileReader, target: int) -> int | None:
    """Offset of the next line that parses with a timestamp >= *target*."""
    while not reader.eof():
        offset = reader.tell()
        try:
            if parse_line(reader.read_line()).timestamp >= target:
                return offset
        except ParseError:
            continue
    return None
