"""
Exception types for the calendar aggregation engine.

Source-level errors (FetchError, ParseError) are raised by the fetcher and
parser and contained by the Aggregator. SkippedEvent marks a single
malformed cloud event and never reaches the caller.
"""

from typing import Optional


class CalendarError(Exception):
    """Base class for all calendar engine errors."""


class ConfigError(CalendarError):
    """Invalid or incomplete configuration."""


class FetchError(CalendarError):
    """
    A calendar source could not be fetched.

    Covers transport failures, timeouts, non-success HTTP status codes and
    responses that fail basic structural validation.
    """

    def __init__(self, source_id: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id
        self.message = message
        self.status_code = status_code


class ParseError(CalendarError):
    """iCalendar content is structurally invalid."""


class SkippedEvent(CalendarError):
    """A single cloud event is unusable and is left out of the result."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
