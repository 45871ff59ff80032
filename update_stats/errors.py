"""Exception taxonomy for the ingestion pipeline."""


class UpdateStatsError(Exception):
    """Base class for all errors raised by update_stats."""


class ParseError(UpdateStatsError):
    """Raised when a single log line cannot be parsed. Recoverable per line."""

    def __init__(self, line_number: int, reason: str = ""):
        self.line_number = line_number
        self.reason = reason
        message = f"Failed to parse line #{line_number}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class TooManyConsecutiveBadLines(UpdateStatsError):
    """Raised when the consecutive malformed-line safeguard trips."""

    def __init__(self, line_number: int, count: int):
        self.line_number = line_number
        self.count = count
        super().__init__(
            f"Too many consecutive bad lines ({count}) at line #{line_number}. "
            "Is this really a valid log file?"
        )


class ConfigurationError(UpdateStatsError):
    """Invalid startup configuration: no input files, bad dates, bad settings."""


class StoreError(UpdateStatsError):
    """A database write failed; the in-progress day was rolled back."""
