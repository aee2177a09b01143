"""Unit tests for iCalendar parsing and recurrence expansion."""
from datetime import datetime

import pytest
import pytz

from household_calendar.errors import ParseError
from household_calendar.event_types import TimeWindow
from household_calendar.ical_parser import NO_TITLE, events_from_ical, parse_feed

from conftest import make_ics, make_vevent


def utc(*args):
    return datetime(*args, tzinfo=pytz.UTC)


class TestParseFeed:
    """Test cases for feed parsing."""

    def test_events_in_document_order(self):
        feed = parse_feed(make_ics(
            make_vevent("a@test", "First", "DTSTART:20260303T150000Z"),
            make_vevent("b@test", "Second", "DTSTART:20260302T150000Z"),
        ))
        assert [str(e.get("SUMMARY")) for e in feed.events] == ["First", "Second"]
        assert feed.timezone is pytz.UTC

    def test_empty_calendar(self):
        assert parse_feed(make_ics()).events == []

    def test_missing_dtstart(self):
        """Test a VEVENT without DTSTART makes the feed invalid."""
        ics = make_ics(
            "BEGIN:VEVENT\r\nUID:broken@test\r\nSUMMARY:No start\r\nEND:VEVENT"
        )
        with pytest.raises(ParseError):
            parse_feed(ics)

    def test_unterminated_calendar(self):
        ics = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nBEGIN:VEVENT\r\nUID:x@test\r\n"
        with pytest.raises(ParseError):
            parse_feed(ics)

    def test_not_icalendar(self):
        with pytest.raises(ParseError):
            parse_feed("this is not a calendar")

    def test_x_wr_timezone_wins_over_default(self):
        feed = parse_feed(
            make_ics(extra_headers="X-WR-TIMEZONE:Europe/Berlin"),
            default_timezone=pytz.timezone("America/New_York"),
        )
        assert str(feed.timezone) == "Europe/Berlin"

    def test_default_timezone_used_without_declaration(self):
        tz = pytz.timezone("America/New_York")
        assert parse_feed(make_ics(), default_timezone=tz).timezone is tz


class TestEventsFromIcal:
    """Test cases for windowed event extraction."""

    def test_single_events_filtered_by_window(self, family_source, week):
        """Test only events starting inside the window are returned."""
        ics = make_ics(
            make_vevent("in@test", "Dentist", "DTSTART:20260303T150000Z",
                        extra="LOCATION:Main St"),
            make_vevent("past@test", "Yesterday", "DTSTART:20260301T150000Z"),
            make_vevent("later@test", "Next month", "DTSTART:20260402T150000Z"),
        )

        events = events_from_ical(ics, family_source, week)

        assert len(events) == 1
        event = events[0]
        assert event.summary == "Dentist"
        assert event.start == utc(2026, 3, 3, 15, 0)
        assert event.calendar_id == family_source.id
        assert event.calendar_name == "Family"
        assert event.color == "secondary"
        assert event.location == "Main St"
        assert not event.all_day
        assert not event.recurring

    def test_window_end_is_exclusive(self, family_source, now):
        ics = make_ics(
            make_vevent("start@test", "At start", "DTSTART:20260302T090000Z"),
            make_vevent("end@test", "At end", "DTSTART:20260302T100000Z"),
        )
        window = TimeWindow(now, utc(2026, 3, 2, 10, 0))
        events = events_from_ical(ics, family_source, window)
        assert [e.summary for e in events] == ["At start"]

    def test_missing_summary(self, family_source, week):
        ics = make_ics(make_vevent("a@test", None, "DTSTART:20260303T150000Z"))
        assert events_from_ical(ics, family_source, week)[0].summary == NO_TITLE

    def test_tzid_is_converted_to_utc(self, family_source, week):
        """Test a zoned start time is stored as a UTC instant."""
        ics = make_ics(make_vevent(
            "a@test", "Pickup", "DTSTART;TZID=America/Chicago:20260303T090000"
        ))
        events = events_from_ical(ics, family_source, week)
        assert events[0].start == utc(2026, 3, 3, 15, 0)

    def test_floating_time_uses_x_wr_timezone(self, family_source, week):
        ics = make_ics(
            make_vevent("a@test", "Breakfast", "DTSTART:20260303T100000"),
            extra_headers="X-WR-TIMEZONE:Europe/Berlin",
        )
        events = events_from_ical(ics, family_source, week)
        assert events[0].start == utc(2026, 3, 3, 9, 0)

    def test_all_day_is_local_midnight(self, family_source, week):
        """Test all-day dates start at midnight of the household timezone."""
        ics = make_ics(make_vevent("a@test", "Holiday", "DTSTART;VALUE=DATE:20260304"))
        events = events_from_ical(
            ics, family_source, week, pytz.timezone("America/New_York")
        )
        assert events[0].start == utc(2026, 3, 4, 5, 0)
        assert events[0].all_day

    def test_weekly_rule_started_before_window(self, family_source, week):
        """Test a series anchored months ago yields its in-window occurrence."""
        ics = make_ics(make_vevent(
            "soccer@test", "Soccer", "DTSTART:20260105T180000Z",
            extra="RRULE:FREQ=WEEKLY;BYDAY=MO"
        ))

        events = events_from_ical(ics, family_source, week)

        assert len(events) == 1
        assert events[0].start == utc(2026, 3, 2, 18, 0)
        assert events[0].recurring

    def test_unbounded_daily_rule_terminates(self, family_source, week):
        """Test a rule without COUNT or UNTIL only yields the window's occurrences."""
        ics = make_ics(make_vevent(
            "lunch@test", "Lunch", "DTSTART:20000101T120000Z",
            extra="RRULE:FREQ=DAILY"
        ))

        events = events_from_ical(ics, family_source, week)

        assert [e.start.day for e in events] == [2, 3, 4, 5, 6, 7, 8]

    def test_exdate_is_excluded(self, family_source, week):
        ics = make_ics(make_vevent(
            "walk@test", "Dog walk", "DTSTART:20260201T070000Z",
            extra="RRULE:FREQ=DAILY\r\nEXDATE:20260304T070000Z"
        ))

        events = events_from_ical(ics, family_source, week)

        assert [e.start.day for e in events] == [3, 5, 6, 7, 8, 9]

    def test_recurrence_id_override(self, family_source, week):
        """Test a modified occurrence replaces the generated one."""
        ics = make_ics(
            make_vevent(
                "soccer@test", "Soccer", "DTSTART:20260105T180000Z",
                extra="RRULE:FREQ=WEEKLY;BYDAY=MO"
            ),
            make_vevent(
                "soccer@test", "Soccer (moved)", "DTSTART:20260303T180000Z",
                extra="RECURRENCE-ID:20260302T180000Z"
            ),
        )

        events = events_from_ical(ics, family_source, week)

        assert [(e.summary, e.start) for e in events] == [
            ("Soccer (moved)", utc(2026, 3, 3, 18, 0)),
        ]

    def test_finished_series(self, family_source, week):
        ics = make_ics(make_vevent(
            "old@test", "Old class", "DTSTART:20250105T180000Z",
            extra="RRULE:FREQ=WEEKLY;COUNT=4"
        ))
        assert events_from_ical(ics, family_source, week) == []

    def test_same_input_same_output(self, family_source, week):
        ics = make_ics(
            make_vevent("a@test", "Dentist", "DTSTART:20260303T150000Z"),
            make_vevent("b@test", "Lunch", "DTSTART:20260101T120000Z",
                        extra="RRULE:FREQ=DAILY"),
        )
        assert events_from_ical(ics, family_source, week) == \
            events_from_ical(ics, family_source, week)
