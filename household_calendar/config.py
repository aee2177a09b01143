"""
Configuration parser for the household calendar.

Handles TOML file parsing into dataclasses and builds the ordered list of
calendar sources.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from .errors import ConfigError
from .event_types import CalendarSource, DEFAULT_COLOR

logger = logging.getLogger(__name__)


DEFAULT_REFRESH_SECONDS = 60 * 60
MIN_REFRESH_SECONDS = 10


@dataclass
class ICSSubscription:
    """Configuration for a read-only iCalendar feed."""
    name: str
    url: str
    color: str = DEFAULT_COLOR

    def to_source(self) -> CalendarSource:
        return CalendarSource(name=self.name, url=self.url, color=self.color)


@dataclass
class GoogleCalendar:
    """Configuration for a Google Calendar fetched through the JSON API."""
    name: str
    calendar_id: str
    color: str = DEFAULT_COLOR
    token_key: str = ""  # Key handed to the password program

    def to_source(self) -> CalendarSource:
        return CalendarSource(
            name=self.name,
            cloud_id=self.calendar_id,
            color=self.color,
            token_key=self.token_key or None,
        )


@dataclass
class Config:
    """Main configuration container for the household calendar."""

    timezone: str = "UTC"
    staleness_seconds: int = 600  # Cached feeds younger than this are served as-is
    request_timeout: int = 10
    source_timeout: int = 15  # Fan-out deadline per aggregation
    refresh_interval: int = DEFAULT_REFRESH_SECONDS  # Background refresh period
    max_workers: int = 5
    password_program: str = "/usr/bin/pass"
    cache_dir: Optional[Path] = None
    # Registration order; the tie-break for equal start times
    calendars: list = field(default_factory=list)

    @property
    def ics_subscriptions(self) -> list[ICSSubscription]:
        return [c for c in self.calendars if isinstance(c, ICSSubscription)]

    @property
    def google_calendars(self) -> list[GoogleCalendar]:
        return [c for c in self.calendars if isinstance(c, GoogleCalendar)]

    def sources(self) -> list[CalendarSource]:
        """Build calendar sources in registration order."""
        return [c.to_source() for c in self.calendars]

    def effective_refresh_interval(self) -> int:
        """
        Background refresh interval in seconds.

        The ``REFRESH_INTERVAL_SECONDS`` environment variable overrides the
        configured value; the result is never below 10 seconds.
        """
        interval = self.refresh_interval
        env_value = os.environ.get('REFRESH_INTERVAL_SECONDS')
        if env_value:
            try:
                interval = int(env_value)
            except ValueError:
                logger.warning("Ignoring invalid REFRESH_INTERVAL_SECONDS=%r", env_value)
        return max(interval, MIN_REFRESH_SECONDS)

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(xdg_config) / 'household-calendar' / 'household-calendar.toml'

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """Load configuration from a TOML file."""
        if config_path is None:
            config_path = cls.get_default_config_path()

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'rb') as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """Build a Config from parsed TOML data."""
        general = data.get('General', {})

        cache_dir = general.get('cache_dir')
        if cache_dir:
            cache_dir = Path(os.path.expanduser(cache_dir))

        calendars = []
        for kind, name, table in _iter_source_tables(data):
            if kind == 'Subscription':
                url = table.get('url', '')
                _check_feed_url(name, url)
                calendars.append(ICSSubscription(
                    name=table.get('name', name),
                    url=url,
                    color=table.get('color', DEFAULT_COLOR)
                ))
            else:
                calendar_id = table.get('calendar_id', '')
                if not calendar_id:
                    raise ConfigError(f"Google calendar '{name}' has no calendar_id")
                calendars.append(GoogleCalendar(
                    name=table.get('name', name),
                    calendar_id=calendar_id,
                    color=table.get('color', DEFAULT_COLOR),
                    token_key=table.get('token_key', '')
                ))
            logger.debug("Found %s calendar: %s", kind, name)

        _check_unique_sources(calendars)

        config = cls(
            timezone=general.get('timezone', cls.timezone),
            staleness_seconds=general.get('staleness_seconds', cls.staleness_seconds),
            request_timeout=general.get('request_timeout', cls.request_timeout),
            source_timeout=general.get('source_timeout', cls.source_timeout),
            refresh_interval=general.get('refresh_interval', cls.refresh_interval),
            max_workers=general.get('max_workers', cls.max_workers),
            password_program=general.get('password_program', cls.password_program),
            cache_dir=cache_dir or None,
            calendars=calendars,
        )
        logger.debug("Total calendars found: %d", len(calendars))
        return config


def _iter_source_tables(data: dict):
    """
    Yield (kind, name, table) for every calendar table in file order.

    Supports both [Subscription.Name] keys and [Subscription] with nested
    sub-tables; the same for [Google].
    """
    for key, value in data.items():
        if not isinstance(value, dict):
            continue
        for kind in ('Subscription', 'Google'):
            # Format 1: [Subscription.Name] as a literal dotted key
            if key.startswith(f'{kind}.'):
                yield kind, key.split('.', 1)[1], value
            # Format 2: [Subscription] with nested [Subscription.Name] sub-tables
            elif key == kind:
                for sub_key, sub_value in value.items():
                    if isinstance(sub_value, dict):
                        yield kind, sub_key, sub_value


def _check_feed_url(name: str, url: str) -> None:
    """Only HTTPS feed URLs are accepted."""
    if not url:
        raise ConfigError(f"Subscription '{name}' has no url")
    parsed = urlparse(url)
    if parsed.scheme != 'https' or not parsed.netloc:
        raise ConfigError(f"Subscription '{name}' must use an https URL: {url}")


def _check_unique_sources(calendars: list) -> None:
    """Each feed URL and calendar_id may be configured only once."""
    seen = {}
    for calendar in calendars:
        source_id = calendar.to_source().id
        if source_id in seen:
            raise ConfigError(
                f"Calendars '{seen[source_id]}' and '{calendar.name}' refer to the same source"
            )
        seen[source_id] = calendar.name
