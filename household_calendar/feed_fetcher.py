"""
Feed fetcher for calendar sources.

Retrieves raw iCalendar text or cloud JSON event lists over HTTP and keeps
the per-source fetch cache up to date. Parsing and normalization happen
downstream; the fetcher only checks that content has the expected shape.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

import pytz
import requests

from .cloud_client import TokenProvider, events_params, events_url
from .errors import CalendarError, FetchError
from .event_types import CalendarSource
from .feed_cache import FeedCache, FeedCacheEntry
from .formats import ContentTypeDetector, FeedKind, FormatDetector

logger = logging.getLogger(__name__)


USER_AGENT = "Household-Calendar/1.0"
DEFAULT_TIMEOUT = 10
DEFAULT_STALENESS_SECONDS = 600
DEFAULT_LOCK_TIMEOUT = 2.0


def _utc_now() -> datetime:
    return datetime.now(pytz.UTC)


@dataclass
class SourceStatus:
    """Fetch status of one calendar source."""
    id: str
    name: str
    last_fetch: Optional[datetime] = None
    error: Optional[str] = None


class FeedFetcher:
    """
    Fetches calendar sources and applies the cache staleness policy.

    ``fetch`` always goes to the network; ``get_feed`` serves fresh cache
    entries and falls back to stale ones when a refresh fails.
    """

    def __init__(
        self,
        cache: Optional[FeedCache] = None,
        detector: Optional[FormatDetector] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
        staleness_seconds: float = DEFAULT_STALENESS_SECONDS,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = _utc_now,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        """
        Initialize the fetcher.

        Args:
            cache: Feed cache to read and update (default: new in-memory cache)
            detector: Format detection strategy (default: content-type sniffing)
            token_provider: Callable returning an access token for a token key,
                required for cloud calendars
            timeout: HTTP request timeout in seconds
            staleness_seconds: Age after which cached content is refreshed
            session: requests session to use (default: a new session)
            clock: Returns the current aware time
            lock_timeout: Seconds an uncached source waits for a refresh
                already running in another thread
        """
        self.cache = cache if cache is not None else FeedCache()
        self.detector = detector or ContentTypeDetector()
        self.token_provider = token_provider
        self.timeout = timeout
        self.staleness_seconds = staleness_seconds
        self._session = session or requests.Session()
        self._clock = clock
        self.lock_timeout = lock_timeout

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._errors: dict[str, str] = {}

    # ==================== Network ====================

    def fetch(self, source: CalendarSource) -> FeedCacheEntry:
        """
        Fetch a source from the network and replace its cache entry.

        Returns:
            The new cache entry.

        Raises:
            FetchError: Transport failure, timeout, non-success status or
                content that fails structural validation. The existing cache
                entry is left untouched.
        """
        try:
            entry = self._fetch(source)
        except FetchError as e:
            self._errors[source.id] = e.message
            raise
        self.cache.put(entry)
        self._errors.pop(source.id, None)
        logger.debug("Fetched %s (%s): %s", source.id, source.name, entry.kind.value)
        return entry

    def _fetch(self, source: CalendarSource) -> FeedCacheEntry:
        try:
            response = self._request(source)
            response.raise_for_status()
        except requests.Timeout as e:
            raise FetchError(source.id, f"Timed out: {e}")
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchError(source.id, f"Provider returned an error: {e}", status_code=status)
        except requests.RequestException as e:
            raise FetchError(source.id, f"Network error: {e}")

        kind = self.detector.detect(response.headers.get('Content-Type'))
        content = self._validate(source, kind, response)
        return FeedCacheEntry(
            source_id=source.id,
            kind=kind,
            content=content,
            fetched_at=self._clock(),
        )

    def _request(self, source: CalendarSource) -> requests.Response:
        """Send the HTTP request for a source."""
        if not source.is_cloud:
            return self._session.get(
                source.url,
                timeout=self.timeout,
                headers={
                    'User-Agent': USER_AGENT,
                    'Accept': 'text/calendar'
                }
            )

        if self.token_provider is None:
            raise FetchError(source.id, "No access token provider configured")
        try:
            token = self.token_provider(source.token_key or source.cloud_id)
        except CalendarError as e:
            raise FetchError(source.id, f"Failed to get access token: {e}")

        return self._session.get(
            events_url(source.cloud_id),
            params=events_params(self._clock()),
            timeout=self.timeout,
            headers={
                'User-Agent': USER_AGENT,
                'Accept': 'application/json',
                'Authorization': f"Bearer {token}",
            }
        )

    def _validate(
        self,
        source: CalendarSource,
        kind: FeedKind,
        response: requests.Response
    ) -> Union[str, list]:
        """Check the basic shape of a response body and return the content."""
        if kind is FeedKind.CLOUD_JSON:
            try:
                data = response.json()
            except ValueError as e:
                raise FetchError(source.id, f"Invalid JSON body: {e}")
            if isinstance(data, dict) and isinstance(data.get('items'), list):
                data = data['items']
            if not isinstance(data, list):
                raise FetchError(source.id, "JSON body is not an event list")
            return data

        # Ensure proper UTF-8 decoding
        response.encoding = 'utf-8'
        text = response.text
        if not text.lstrip('\ufeff \t\r\n').upper().startswith('BEGIN:VCALENDAR'):
            raise FetchError(source.id, "Body is not an iCalendar document")
        return text

    # ==================== Cache Policy ====================

    def is_fresh(self, entry: FeedCacheEntry) -> bool:
        """Check whether a cache entry is inside the staleness window."""
        return entry.age_seconds(self._clock()) < self.staleness_seconds

    def get_feed(self, source: CalendarSource, force: bool = False) -> FeedCacheEntry:
        """
        Get the content of a source, refreshing it when stale.

        Args:
            source: Calendar source to read
            force: If True, always attempt a refresh

        Returns:
            The fresh entry, or the last-known-good entry if a refresh failed
            or another refresh of the source is still running.

        Raises:
            FetchError: The refresh failed and nothing was ever cached, or
                nothing was cached and a running refresh did not finish
                within ``lock_timeout``.
        """
        entry = self.cache.get(source.id)
        if not force and entry is not None and self.is_fresh(entry):
            logger.debug("Cache hit for %s (%s)", source.id, source.name)
            return entry

        # Never queue behind a running refresh when there is content to serve
        lock = self._source_lock(source.id)
        if entry is not None:
            acquired = lock.acquire(blocking=False)
        else:
            acquired = lock.acquire(timeout=self.lock_timeout)
        if not acquired:
            if entry is not None:
                logger.debug(
                    "Refresh of %s (%s) already running, using content from %s",
                    source.id, source.name, entry.fetched_at.isoformat()
                )
                return entry
            raise FetchError(source.id, "Refresh already in progress")

        try:
            # Another caller may have refreshed while we waited
            entry = self.cache.get(source.id)
            if not force and entry is not None and self.is_fresh(entry):
                return entry

            try:
                return self.fetch(source)
            except FetchError as e:
                if entry is None:
                    raise
                logger.warning(
                    "Refresh of %s (%s) failed, using content from %s: %s",
                    source.id, source.name, entry.fetched_at.isoformat(), e.message
                )
                return entry
        finally:
            lock.release()

    def _source_lock(self, source_id: str) -> threading.Lock:
        """Per-source lock so concurrent identical fetches run once."""
        with self._locks_guard:
            lock = self._locks.get(source_id)
            if lock is None:
                lock = self._locks[source_id] = threading.Lock()
            return lock

    # ==================== Status ====================

    def get_status(self, source: CalendarSource) -> SourceStatus:
        """Get last fetch time and last error of a source."""
        entry = self.cache.get(source.id)
        return SourceStatus(
            id=source.id,
            name=source.name,
            last_fetch=entry.fetched_at if entry else None,
            error=self._errors.get(source.id),
        )
