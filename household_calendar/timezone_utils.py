"""
Timezone utilities for the household calendar.

All event instants are normalized to UTC. All-day dates are anchored at
local midnight of the configured household timezone.
"""

from datetime import datetime, date, time
from typing import Optional, Union
import pytz


# Default timezone - overridden from config at startup
_local_timezone_name: str = "UTC"


def set_timezone(timezone_name: str):
    """Set the household timezone used for all-day and floating values."""
    global _local_timezone_name
    _local_timezone_name = timezone_name


def get_local_timezone():
    """
    Get the household timezone as a pytz timezone object.

    Returns:
        pytz timezone for the configured name, or UTC if the name is unknown.
    """
    return resolve_timezone(_local_timezone_name) or pytz.UTC


def resolve_timezone(name: Optional[str]):
    """
    Look up a timezone by Olson name.

    Returns:
        pytz timezone object, or None if the name is empty or unknown.
    """
    if not name:
        return None
    try:
        return pytz.timezone(str(name).strip())
    except pytz.UnknownTimeZoneError:
        return None


def localize(dt: datetime, tz=None) -> datetime:
    """
    Attach a timezone to a floating (naive) datetime.

    Aware datetimes are returned unchanged.
    """
    if dt.tzinfo is not None:
        return dt
    tz = tz or get_local_timezone()
    if hasattr(tz, 'localize'):
        return tz.localize(dt)
    return dt.replace(tzinfo=tz)


def to_utc_datetime(dt: datetime, tz=None) -> datetime:
    """
    Convert a datetime to UTC.

    Args:
        dt: Aware datetime, or naive datetime interpreted in ``tz``.
        tz: Timezone for naive values (default: household timezone).

    Returns:
        A timezone-aware datetime in UTC.
    """
    return localize(dt, tz).astimezone(pytz.UTC)


def local_midnight(day: date, tz=None) -> datetime:
    """Return local midnight of ``day`` as a UTC instant."""
    return to_utc_datetime(datetime.combine(day, time.min), tz)


def to_instant(value: Union[datetime, date], tz=None) -> datetime:
    """
    Turn an iCalendar/JSON start value into a UTC instant.

    Dates (all-day) become local midnight; datetimes are localized if
    floating and converted to UTC.
    """
    if isinstance(value, datetime):
        return to_utc_datetime(value, tz)
    return local_midnight(value, tz)


def is_all_day(value) -> bool:
    """Check whether a start value is a calendar date without time."""
    return isinstance(value, date) and not isinstance(value, datetime)


def to_local_datetime(dt: datetime) -> datetime:
    """Convert an aware datetime to the household timezone for display."""
    if dt.tzinfo is not None:
        return dt.astimezone(get_local_timezone())
    return dt
