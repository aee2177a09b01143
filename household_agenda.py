#!/usr/bin/env python3
"""
Household Agenda - prints upcoming events of all configured calendars.

This is the command-line entry point for the calendar aggregation engine.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from household_calendar.calendar_service import CalendarService
from household_calendar.config import Config
from household_calendar.errors import ConfigError
from household_calendar.timezone_utils import to_local_datetime


EXAMPLE_CONFIG = """
[General]
timezone = "America/Chicago"
password_program = "/usr/bin/pass"

[Subscription.Family]
url = "https://calendar.google.com/calendar/ical/family/basic.ics"
color = "secondary"

[Google.School]
calendar_id = "school@group.calendar.google.com"
token_key = "google/access_token"
"""


def non_negative_int(value: str) -> int:
    """argparse type for counts that must not be negative."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Household Agenda - upcoming events from iCalendar feeds and Google Calendar"
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to configuration file (default: auto-detect)"
    )
    parser.add_argument(
        "--days",
        type=non_negative_int,
        default=7,
        help="Number of days to look ahead (default: 7)"
    )
    parser.add_argument(
        "--limit",
        type=non_negative_int,
        default=10,
        help="Maximum number of events (default: 10)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print events as JSON"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print per-calendar fetch status after the events"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output"
    )
    return parser.parse_args(argv)


def format_event(event) -> str:
    """Format one event as an agenda line."""
    local_start = to_local_datetime(event.start)
    if event.all_day:
        when = local_start.strftime("%a %b %d") + "  all day"
    else:
        when = local_start.strftime("%a %b %d  %H:%M")
    return f"{when:<20}  {event.summary}  [{event.calendar_name}]"


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    try:
        config = Config.load(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("\nPlease create a configuration file at:", file=sys.stderr)
        print(f"  - {Config.get_default_config_path()}", file=sys.stderr)
        print("\nExample configuration:", file=sys.stderr)
        print(EXAMPLE_CONFIG, file=sys.stderr)
        return 1
    except ConfigError as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    service = CalendarService(config)
    try:
        events = service.upcoming_events(days=args.days, limit=args.limit)

        if args.json:
            print(json.dumps([event.to_dict() for event in events], indent=2))
        elif events:
            for event in events:
                print(format_event(event))
        else:
            print("No upcoming events.")

        if args.status:
            for status in service.source_statuses():
                last = status.last_fetch.isoformat() if status.last_fetch else "never"
                line = f"{status.name}: last fetch {last}"
                if status.error:
                    line += f", error: {status.error}"
                print(line, file=sys.stderr)
    finally:
        service.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
