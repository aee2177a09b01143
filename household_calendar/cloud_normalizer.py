"""
Normalizer for Google Calendar JSON events.

Cloud events arrive already expanded into single instances (the events
request uses ``singleEvents=true``), so no recurrence rule is consulted
here. Each event carries either ``start.dateTime`` (timed) or
``start.date`` (all-day).
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Any, Optional

from .errors import SkippedEvent
from .event_types import CalendarSource, NormalizedEvent, TimeWindow
from .timezone_utils import local_midnight, to_utc_datetime

logger = logging.getLogger(__name__)


NO_TITLE = 'No Title'


def _parse_date_time(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting a trailing ``Z``."""
    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


def normalize(
    event: Any,
    source: CalendarSource,
    tz: Optional[tzinfo] = None
) -> NormalizedEvent:
    """
    Convert one cloud JSON event into a NormalizedEvent.

    Args:
        event: Decoded JSON event object
        source: Calendar the event belongs to
        tz: Timezone for all-day dates and offset-less timestamps
            (default: household timezone)

    Raises:
        SkippedEvent: The event has no usable start value.
    """
    if not isinstance(event, dict):
        raise SkippedEvent("event is not an object")

    start = event.get('start')
    if not isinstance(start, dict):
        raise SkippedEvent("event has no start")

    date_time = start.get('dateTime')
    all_day_date = start.get('date')
    try:
        if date_time:
            instant = to_utc_datetime(_parse_date_time(str(date_time)), tz)
            all_day = False
        elif all_day_date:
            instant = local_midnight(date.fromisoformat(str(all_day_date)), tz)
            all_day = True
        else:
            raise SkippedEvent("event has neither start.dateTime nor start.date")
    except ValueError as e:
        raise SkippedEvent(f"unparseable start value: {e}") from e

    return NormalizedEvent(
        summary=str(event.get('summary') or NO_TITLE),
        start=instant,
        calendar_id=source.id,
        calendar_name=source.name,
        color=source.color,
        all_day=all_day,
        location=str(event.get('location') or ''),
    )


def normalize_events(
    events: list,
    source: CalendarSource,
    window: TimeWindow,
    tz: Optional[tzinfo] = None
) -> list[NormalizedEvent]:
    """
    Normalize a cloud event list and keep the events starting in ``window``.

    Malformed events are skipped without affecting their siblings.
    """
    result = []
    skipped = 0
    for event in events:
        try:
            normalized = normalize(event, source, tz)
        except SkippedEvent as e:
            skipped += 1
            logger.debug("%s (%s): skipping event: %s", source.id, source.name, e.reason)
            continue
        if window.contains(normalized.start):
            result.append(normalized)

    if skipped:
        logger.debug("%s (%s): skipped %d malformed events", source.id, source.name, skipped)
    return result
