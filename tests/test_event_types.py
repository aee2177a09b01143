"""Unit tests for calendar sources, time windows and normalized events."""
from datetime import datetime, timedelta

import pytest
import pytz

from household_calendar.event_types import (
    CalendarSource,
    DEFAULT_COLOR,
    NormalizedEvent,
    TimeWindow,
)


class TestCalendarSource:
    """Test cases for CalendarSource."""

    def test_feed_source_gets_stable_id(self):
        """Test the generated id depends only on the URL."""
        a = CalendarSource(name="A", url="https://example.com/a.ics")
        b = CalendarSource(name="Renamed", url="https://example.com/a.ics")
        assert a.id.startswith("ics:")
        assert a.id == b.id
        assert not a.is_cloud
        assert a.color == DEFAULT_COLOR

    def test_cloud_source(self):
        """Test cloud sources get a google-prefixed id."""
        source = CalendarSource(name="Work", cloud_id="work@example.com")
        assert source.id.startswith("google:")
        assert source.is_cloud

    def test_explicit_id_is_kept(self):
        source = CalendarSource(name="A", url="https://example.com/a.ics", id="family")
        assert source.id == "family"

    def test_requires_exactly_one_locator(self):
        """Test a source needs a URL or a cloud id, but not both."""
        with pytest.raises(ValueError):
            CalendarSource(name="Nothing")
        with pytest.raises(ValueError):
            CalendarSource(name="Both", url="https://example.com/a.ics", cloud_id="x")


class TestTimeWindow:
    """Test cases for TimeWindow."""

    def test_upcoming(self, now):
        window = TimeWindow.upcoming(7, now)
        assert window.start == now
        assert window.end == now + timedelta(days=7)

    def test_half_open(self, now):
        """Test the start is included and the end is excluded."""
        window = TimeWindow(now, now + timedelta(hours=1))
        assert window.contains(now)
        assert window.contains(now + timedelta(minutes=59))
        assert not window.contains(now + timedelta(hours=1))
        assert not window.contains(now - timedelta(seconds=1))

    def test_empty_window_contains_nothing(self, now):
        window = TimeWindow(now, now)
        assert not window.contains(now)

    def test_rejects_reversed_bounds(self, now):
        with pytest.raises(ValueError):
            TimeWindow(now, now - timedelta(days=1))

    def test_rejects_naive_bounds(self):
        with pytest.raises(ValueError):
            TimeWindow(datetime(2026, 3, 2), datetime(2026, 3, 9))


class TestNormalizedEvent:
    """Test cases for NormalizedEvent."""

    def test_to_dict(self):
        event = NormalizedEvent(
            summary="Dentist",
            start=datetime(2026, 3, 3, 15, 0, tzinfo=pytz.UTC),
            calendar_id="ics:abc",
            calendar_name="Family",
            color="secondary",
            location="Main St",
        )
        data = event.to_dict()
        assert data["summary"] == "Dentist"
        assert data["start"] == "2026-03-03T15:00:00+00:00"
        assert data["all_day"] is False
        assert data["recurring"] is False
        assert data["calendar_name"] == "Family"
        assert data["color"] == "secondary"
        assert data["location"] == "Main St"
