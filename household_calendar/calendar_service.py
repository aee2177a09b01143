"""
Calendar service shared by the dashboard and the kiosk display.

Wires configuration, feed cache, fetcher and aggregator together. Both
views call the same service, so upcoming events are computed in one place.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from .aggregator import Aggregator, DEFAULT_LIMIT
from .cloud_client import PasswordProgramTokenProvider, TokenProvider
from .config import Config
from .event_types import CalendarSource, NormalizedEvent, TimeWindow
from .feed_cache import FeedCache
from .feed_fetcher import FeedFetcher, SourceStatus
from .network_worker import NetworkWorker
from .timezone_utils import get_local_timezone, set_timezone

logger = logging.getLogger(__name__)


UPCOMING_DAYS = 7


class CalendarService:
    """
    Upcoming-events service over all configured calendars.

    Refresh is lazy (stale feeds are refetched when events are requested);
    ``start_background_refresh`` additionally refreshes every feed on a timer.
    """

    def __init__(
        self,
        config: Config,
        fetcher: Optional[FeedFetcher] = None,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.config = config
        set_timezone(config.timezone)
        self._sources: list[CalendarSource] = config.sources()

        if fetcher is None:
            if token_provider is None and config.google_calendars:
                token_provider = PasswordProgramTokenProvider(
                    config.password_program, timeout=config.request_timeout
                )
            fetcher = FeedFetcher(
                cache=FeedCache(config.cache_dir),
                token_provider=token_provider,
                timeout=config.request_timeout,
                staleness_seconds=config.staleness_seconds,
            )
        self.fetcher = fetcher

        self._worker = NetworkWorker(max_workers=config.max_workers)
        self.aggregator = Aggregator(
            fetcher,
            worker=self._worker,
            source_timeout=config.source_timeout,
            timezone=get_local_timezone(),
        )

        self._refresh_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def sources(self) -> list[CalendarSource]:
        """Configured calendar sources in registration order."""
        return list(self._sources)

    # ==================== Consumers ====================

    def upcoming_events(
        self,
        days: int = UPCOMING_DAYS,
        limit: int = DEFAULT_LIMIT,
        now: Optional[datetime] = None
    ) -> list[NormalizedEvent]:
        """
        Get the next events of all calendars.

        Args:
            days: Length of the window starting at ``now``
            limit: Maximum number of events
            now: Window start (default: current time)
        """
        window = TimeWindow.upcoming(days, now)
        return self.aggregator.aggregate(self._sources, window, limit)

    def dashboard_events(self, now: Optional[datetime] = None) -> list[NormalizedEvent]:
        """Events for the admin dashboard's upcoming-events card."""
        return self.upcoming_events(now=now)

    def display_events(self, now: Optional[datetime] = None) -> list[NormalizedEvent]:
        """Events for the kiosk display's events card."""
        return self.upcoming_events(now=now)

    def source_statuses(self) -> list[SourceStatus]:
        """Fetch status of every calendar source."""
        return [self.fetcher.get_status(source) for source in self._sources]

    # ==================== Refresh ====================

    def refresh_all(self) -> dict[str, bool]:
        """
        Refresh every calendar feed now, concurrently.

        Returns:
            Dict mapping source ID to success status.
        """
        tasks = {
            source.id: (lambda s=source: self.fetcher.fetch(s))
            for source in self._sources
        }
        results = self._worker.run_all(tasks, timeout=self.config.source_timeout)

        status = {}
        ical_count = 0
        google_count = 0
        for source in self._sources:
            result = results[source.id]
            status[source.id] = result.ok
            if not result.ok:
                logger.warning(
                    "Failed refreshing calendar %s (%s): %s", source.id, source.name, result.error
                )
            elif source.is_cloud:
                google_count += 1
            else:
                ical_count += 1

        logger.info("Calendar refresh complete: google=%d ical=%d", google_count, ical_count)
        return status

    def start_background_refresh(self, interval: Optional[int] = None) -> None:
        """
        Start a daemon thread that refreshes all feeds periodically.

        The first refresh runs immediately.
        """
        if self._refresh_thread is not None and self._refresh_thread.is_alive():
            return
        if interval is None:
            interval = self.config.effective_refresh_interval()

        self._stop_event.clear()
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop,
            args=(interval,),
            name="calendar-refresh",
            daemon=True,
        )
        self._refresh_thread.start()

    def stop_background_refresh(self, timeout: Optional[float] = None) -> None:
        """Stop the background refresh thread."""
        self._stop_event.set()
        if self._refresh_thread is not None:
            self._refresh_thread.join(timeout)
            self._refresh_thread = None

    def _refresh_loop(self, interval: int) -> None:
        logger.info("Initial background refresh cycle (interval: %ds)", interval)
        while True:
            try:
                self.refresh_all()
            except Exception:
                logger.exception("Calendar refresh cycle failed")
            if self._stop_event.wait(interval):
                break
            logger.info("Starting background refresh cycle (interval: %ds)", interval)

    def close(self) -> None:
        """Stop background work and release the thread pool."""
        self.stop_background_refresh()
        self._worker.shutdown(wait=False)
