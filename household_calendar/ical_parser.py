"""
iCalendar parsing and recurrence expansion.

Parses VCALENDAR text with icalendar and expands recurring VEVENTs with
recurring_ical_events. Expansion is a lazy generator bounded by the
requested time window, so rules without COUNT or UNTIL terminate.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterator, Optional, Union

import pytz
from icalendar import Calendar as ICalCalendar, Event as ICalEvent
from recurring_ical_events import of as recurring_events_of

from .errors import ParseError
from .event_types import CalendarSource, NormalizedEvent, TimeWindow
from .timezone_utils import is_all_day, resolve_timezone, to_instant

logger = logging.getLogger(__name__)


PRODID = '-//Household Calendar//household-calendar//'
NO_TITLE = 'No Title'

# Lower bound slack for the expansion query; covers any UTC offset of
# floating event times. Occurrences before the window are dropped anyway.
_QUERY_SLACK = timedelta(days=1)


@dataclass
class ParsedFeed:
    """VEVENT components of one feed plus its effective default timezone."""
    calendar: ICalCalendar
    events: list[ICalEvent]
    timezone: tzinfo


@dataclass(frozen=True)
class Occurrence:
    """One concrete occurrence of a (possibly recurring) VEVENT."""
    summary: str
    start: Union[datetime, date]
    recurring: bool = False
    location: str = ""


# ==================== Parsing ====================

def parse_feed(raw_text: str, default_timezone: Optional[tzinfo] = None) -> ParsedFeed:
    """
    Parse iCalendar text into its VEVENT components.

    Args:
        raw_text: Raw VCALENDAR text
        default_timezone: Timezone for floating times when the feed does not
            declare X-WR-TIMEZONE (default: UTC)

    Returns:
        ParsedFeed with the events in document order.

    Raises:
        ParseError: The text is not a complete VCALENDAR, or a VEVENT has no
            DTSTART.
    """
    try:
        calendar = ICalCalendar.from_ical(raw_text)
    except ValueError as e:
        raise ParseError(f"Invalid iCalendar data: {e}") from e

    if calendar.name != 'VCALENDAR':
        raise ParseError(f"Expected VCALENDAR, found {calendar.name}")

    events = list(calendar.walk('VEVENT'))
    for event in events:
        if event.get('DTSTART') is None:
            uid = event.get('UID', '?')
            raise ParseError(f"VEVENT {uid} has no DTSTART")

    timezone = (
        resolve_timezone(calendar.get('X-WR-TIMEZONE'))
        or default_timezone
        or pytz.UTC
    )
    return ParsedFeed(calendar=calendar, events=events, timezone=timezone)


def _is_recurring(event: ICalEvent) -> bool:
    return event.get('RRULE') is not None or event.get('RDATE') is not None


def _text(event: ICalEvent, name: str) -> str:
    value = event.get(name)
    return str(value) if value else ''


def _occurrence(event: ICalEvent, recurring: bool) -> Occurrence:
    return Occurrence(
        summary=_text(event, 'SUMMARY') or NO_TITLE,
        start=event.get('DTSTART').dt,
        recurring=recurring,
        location=_text(event, 'LOCATION'),
    )


# ==================== Recurrence Expansion ====================

def iter_occurrences(feed: ParsedFeed, window: TimeWindow) -> Iterator[Occurrence]:
    """
    Lazily yield every occurrence of the feed that starts inside ``window``.

    Non-recurring events yield at most one occurrence. Recurring events are
    expanded series by series; RECURRENCE-ID overrides replace the
    occurrence they refer to.

    Raises:
        ParseError: A recurrence rule cannot be expanded.
    """
    masters: list[ICalEvent] = []
    master_uids: set[str] = set()
    for event in feed.events:
        if _is_recurring(event):
            masters.append(event)
            master_uids.add(_text(event, 'UID'))

    overrides: dict[str, list[ICalEvent]] = defaultdict(list)
    for event in feed.events:
        if _is_recurring(event):
            continue
        uid = _text(event, 'UID')
        if event.get('RECURRENCE-ID') is not None and uid and uid in master_uids:
            overrides[uid].append(event)
            continue
        if window.contains(to_instant(event.get('DTSTART').dt, feed.timezone)):
            yield _occurrence(event, recurring=False)

    for master in masters:
        uid = _text(master, 'UID')
        yield from expand_series(master, overrides.get(uid, []) if uid else [], feed, window)


def expand_series(
    master: ICalEvent,
    overrides: list[ICalEvent],
    feed: ParsedFeed,
    window: TimeWindow
) -> Iterator[Occurrence]:
    """
    Expand one recurring event into its occurrences inside ``window``.

    Occurrences come in non-decreasing start order from the rule's anchor.
    Those before the window are skipped; generation stops at the first
    occurrence starting at or after the window end.
    """
    # Build a minimal VCALENDAR containing just this series
    vcal = ICalCalendar()
    vcal.add('prodid', PRODID)
    vcal.add('version', '2.0')
    for vtimezone in feed.calendar.walk('VTIMEZONE'):
        vcal.add_component(vtimezone)
    vcal.add_component(master)
    for override in overrides:
        vcal.add_component(override)

    try:
        for ical_event in recurring_events_of(vcal).after(window.start - _QUERY_SLACK):
            start = ical_event.get('DTSTART').dt
            instant = to_instant(start, feed.timezone)
            if instant >= window.end:
                return
            if instant < window.start:
                continue
            yield _occurrence(ical_event, recurring=True)
    except (ValueError, TypeError) as e:
        raise ParseError(f"Cannot expand recurring event {_text(master, 'UID')}: {e}") from e


# ==================== Normalization ====================

def normalize_occurrence(
    occurrence: Occurrence,
    source: CalendarSource,
    tz: Optional[tzinfo] = None
) -> NormalizedEvent:
    """Convert an occurrence into the unified event shape."""
    return NormalizedEvent(
        summary=occurrence.summary,
        start=to_instant(occurrence.start, tz),
        calendar_id=source.id,
        calendar_name=source.name,
        color=source.color,
        all_day=is_all_day(occurrence.start),
        recurring=occurrence.recurring,
        location=occurrence.location,
    )


def events_from_ical(
    raw_text: str,
    source: CalendarSource,
    window: TimeWindow,
    default_timezone: Optional[tzinfo] = None
) -> list[NormalizedEvent]:
    """
    Parse a feed and return its normalized in-window events.

    Raises:
        ParseError: The feed or one of its recurrence rules is invalid.
    """
    feed = parse_feed(raw_text, default_timezone)
    events = [
        normalize_occurrence(occurrence, source, feed.timezone)
        for occurrence in iter_occurrences(feed, window)
    ]
    logger.debug("%s (%s): %d events in window", source.id, source.name, len(events))
    return events
