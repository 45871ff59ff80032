"""Console progress for long log scans: one bar per day, ticks per hour."""

import logging
import sys
from typing import TextIO

import psutil

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Draws ``2024-01-01 [=====] 1,234 lines, DB flush: 0.012s`` lines.

    The bar gets one ``=`` per hour of the day that has been reached. After
    each flushed day the process RSS is sampled through psutil and the
    highest value seen is kept in ``peak_rss``.
    """

    def __init__(self, stream: TextIO | None = None, enabled: bool = True):
        self._stream = stream if stream is not None else sys.stdout
        self._enabled = enabled
        self._process = psutil.Process()
        self._last_hour = -1
        self.peak_rss = 0

    def _write(self, text: str) -> None:
        if self._enabled:
            self._stream.write(text)
            self._stream.flush()

    def day_started(self, date: str) -> None:
        self._last_hour = -1
        self._write(f"{date} [")

    def hour_reached(self, hour: int) -> None:
        if hour != self._last_hour:
            self._write("=" * max(hour - self._last_hour, 1))
            self._last_hour = hour

    def day_flushed(self, date: str, line_count: int, seconds: float) -> None:
        self._write(f"] {line_count:,} lines, DB flush: {seconds:.3f}s\n")
        logger.info("Flushed %s: %d lines in %.3fs", date, line_count, seconds)
        self.sample_memory()

    def sample_memory(self) -> int:
        rss = self._process.memory_info().rss
        self.peak_rss = max(self.peak_rss, rss)
        return rss

    @property
    def peak_rss_mib(self) -> float:
        return self.peak_rss / (1024 * 1024)
