"""
Household Calendar Aggregation Engine

This package merges upcoming events from several calendar sources:
- Configuration parsing (config.py)
- Feed fetching with a staleness-controlled cache (feed_fetcher.py, feed_cache.py)
- iCalendar parsing and recurrence expansion (ical_parser.py)
- Google Calendar JSON normalization (cloud_normalizer.py)
- Concurrent merge/sort/limit across sources (aggregator.py)
- Shared service for the dashboard and display views (calendar_service.py)
"""

from .config import Config
from .errors import CalendarError, ConfigError, FetchError, ParseError, SkippedEvent
from .event_types import CalendarSource, NormalizedEvent, TimeWindow
from .feed_cache import FeedCache, FeedCacheEntry
from .feed_fetcher import FeedFetcher
from .formats import ContentTypeDetector, FeedKind, FormatDetector
from .aggregator import Aggregator
from .calendar_service import CalendarService

__all__ = [
    'Config',
    'CalendarError',
    'ConfigError',
    'FetchError',
    'ParseError',
    'SkippedEvent',
    'CalendarSource',
    'NormalizedEvent',
    'TimeWindow',
    'FeedCache',
    'FeedCacheEntry',
    'FeedFetcher',
    'ContentTypeDetector',
    'FeedKind',
    'FormatDetector',
    'Aggregator',
    'CalendarService',
]
