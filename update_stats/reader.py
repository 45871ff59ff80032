"""Read a group of log files as if they were one big seekable file."""

import glob
import io
import logging
import os

from update_stats.errors import ConfigurationError, ParseError
from update_stats.parser import parse_line

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5 * 1024


class MultiFileReader:
    """Virtual byte stream over several append-only files.

    Offsets address one logical space: file *i* starts where file *i-1*
    ends. Empty files are skipped. Lines are returned decoded as UTF-8
    with their trailing newline, or ``""`` at the end of the stream.
    """

    def __init__(self, paths: list[str], encoding: str = "utf-8"):
        if not paths:
            raise ConfigurationError("You must specify at least one file.")

        self._encoding = encoding
        self._files = []
        self._offsets: list[int] = []
        self._sizes: list[int] = []
        self._index = 0

        total = 0
        try:
            for path in paths:
                size = os.path.getsize(path)
                if size == 0:
                    logger.debug("Skipping empty log file %s", path)
                    continue
                self._files.append(open(path, "rb"))
                self._offsets.append(total)
                self._sizes.append(size)
                total += size
        except OSError:
            self.close()
            raise
        self._size = total

    @property
    def size(self) -> int:
        return self._size

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        for f in self._files:
            f.close()
        self._files = []

    def _has_next_file(self) -> bool:
        return self._index < len(self._files) - 1

    def _current_exhausted(self) -> bool:
        return self._files[self._index].tell() >= self._sizes[self._index]

    def read_line(self) -> str:
        """Read the next line, moving on to the next file when needed."""
        if not self._files:
            return ""

        while self._current_exhausted() and self._has_next_file():
            self._index += 1
            self._files[self._index].seek(0, io.SEEK_SET)

        raw = self._files[self._index].readline()
        return raw.decode(self._encoding, errors="replace")

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move to a virtual offset. Returns the new absolute offset."""
        if not self._files:
            return 0

        if whence == io.SEEK_END:
            offset = self._size + offset
        elif whence == io.SEEK_CUR:
            offset = self.tell() + offset

        if offset < 0:
            raise ValueError(f"negative seek position {offset}")

        found = 0
        for index in range(len(self._offsets) - 1, 0, -1):
            if self._offsets[index] <= offset:
                found = index
                break

        self._index = found
        self._files[found].seek(offset - self._offsets[found], io.SEEK_SET)
        return offset

    def tell(self) -> int:
        if not self._files:
            return 0
        return self._offsets[self._index] + self._files[self._index].tell()

    def eof(self) -> bool:
        if not self._files:
            return True
        return not self._has_next_file() and self._current_exhausted()

    def __iter__(self):
        while not self.eof():
            yield self.read_line()


def first_timestamp(path: str) -> int | None:
    """Timestamp of the first parseable entry in the first few KiB of a file."""
    with open(path, "rb") as f:
        sample = f.read(SAMPLE_SIZE).decode("utf-8", errors="replace")
    for line in sample.split("\n"):
        try:
            return parse_line(line).timestamp
        except ParseError:
            continue
    return None


def sort_by_first_timestamp(paths: list[str]) -> list[str]:
    """Sort log files oldest to newest.

    The first entry's timestamp is the key; the modification time is the
    fallback for files whose first few KiB don't parse.
    """
    keys = {}
    for path in paths:
        timestamp = first_timestamp(path)
        keys[path] = timestamp if timestamp is not None else int(os.path.getmtime(path))
    return sorted(paths, key=lambda p: keys[p])


def find_log_files(directory: str) -> list[str]:
    """All ``*.log`` files in *directory*.

    Raises ConfigurationError if the directory is missing or has no logs.
    """
    if not os.path.isdir(directory):
        raise ConfigurationError(f"Directory not found: {directory}")
    files = sorted(glob.glob(os.path.join(glob.escape(directory), "*.log")))
    if not files:
        raise ConfigurationError(f"The directory {directory} contains no .log files.")
    return files
