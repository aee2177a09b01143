"""Shared fixtures for calendar engine tests."""
from datetime import datetime

import pytest
import pytz

from household_calendar.event_types import CalendarSource, TimeWindow
from household_calendar.timezone_utils import set_timezone


FEED_URL = "https://example.com/family.ics"
SCHOOL_URL = "https://example.com/school.ics"

# Monday 2026-03-02 09:00 UTC
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=pytz.UTC)


def make_ics(*vevents, extra_headers=""):
    """Wrap VEVENT blocks in a VCALENDAR document."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Test//Test//EN",
    ]
    if extra_headers:
        lines.append(extra_headers)
    for vevent in vevents:
        lines.append(vevent.strip())
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def make_vevent(uid, summary, dtstart, extra=""):
    """Build a VEVENT block; ``dtstart`` is the full DTSTART property line."""
    lines = [
        "BEGIN:VEVENT",
        f"UID:{uid}",
        "DTSTAMP:20260101T000000Z",
        dtstart,
    ]
    if summary is not None:
        lines.append(f"SUMMARY:{summary}")
    if extra:
        lines.append(extra.strip())
    lines.append("END:VEVENT")
    return "\r\n".join(lines)


@pytest.fixture(autouse=True)
def utc_household_timezone():
    """Every test starts with the household timezone set to UTC."""
    set_timezone("UTC")
    yield
    set_timezone("UTC")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def week(now):
    return TimeWindow.upcoming(7, now)


@pytest.fixture
def family_source():
    return CalendarSource(name="Family", url=FEED_URL, color="secondary")


@pytest.fixture
def school_source():
    return CalendarSource(name="School", url=SCHOOL_URL)


@pytest.fixture
def google_source():
    return CalendarSource(name="Work", cloud_id="work@example.com", token_key="google/work")
