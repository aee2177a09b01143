"""
Aggregator merging events from all configured calendar sources.

Fans out fetch + parse/normalize per source, contains failures at the
source boundary, then merges, sorts and truncates the result.
"""

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from functools import partial
from typing import Optional

from .cloud_normalizer import normalize_events
from .errors import FetchError, ParseError
from .event_types import CalendarSource, NormalizedEvent, TimeWindow
from .feed_fetcher import FeedFetcher
from .formats import FeedKind
from .ical_parser import events_from_ical
from .network_worker import NetworkWorker, get_network_worker, TaskResult

logger = logging.getLogger(__name__)


DEFAULT_LIMIT = 10
DEFAULT_SOURCE_TIMEOUT = 15.0


@dataclass
class AggregationReport:
    """Per-source outcome of one aggregation call."""
    window: TimeWindow
    event_counts: dict[str, int] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def failed_sources(self) -> list[str]:
        return list(self.failures.keys())


class Aggregator:
    """
    Merges normalized events from many calendar sources.

    One source's FetchError, ParseError or timeout only removes that
    source's events from the result; it never fails the whole call.
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        worker: Optional[NetworkWorker] = None,
        source_timeout: Optional[float] = DEFAULT_SOURCE_TIMEOUT,
        timezone: Optional[tzinfo] = None,
    ):
        """
        Args:
            fetcher: Feed fetcher with its cache
            worker: Thread pool for the fan-out (default: global worker)
            source_timeout: Seconds to wait for all sources before treating
                the unfinished ones as failed
            timezone: Default timezone for floating times and all-day dates
        """
        self.fetcher = fetcher
        self.source_timeout = source_timeout
        self.timezone = timezone
        self._worker = worker or get_network_worker()
        self.last_report: Optional[AggregationReport] = None

    def aggregate(
        self,
        sources: list[CalendarSource],
        window: TimeWindow,
        limit: int = DEFAULT_LIMIT,
        force: bool = False
    ) -> list[NormalizedEvent]:
        """
        Get the first ``limit`` events of all sources inside ``window``.

        Args:
            sources: Calendar sources in registration order
            window: Half-open time range to report
            limit: Maximum number of events to return
            force: If True, refresh every source regardless of cache age

        Returns:
            Events sorted by start, then source registration order, then
            summary. Empty when nothing matches.
        """
        tasks = {
            str(index): partial(self._events_for_source, source, window, force)
            for index, source in enumerate(sources)
        }
        results = self._worker.run_all(tasks, timeout=self.source_timeout) if tasks else {}

        report = AggregationReport(window=window)
        merged: list[tuple[int, NormalizedEvent]] = []
        for index, source in enumerate(sources):
            result = results[str(index)]
            if not result.ok:
                report.failures[source.id] = self._log_failure(source, result)
                continue
            report.event_counts[source.id] = len(result.value)
            merged.extend((index, event) for event in result.value)

        merged.sort(key=lambda item: (item[1].start, item[0], item[1].summary))
        self.last_report = report

        logger.debug(
            "Aggregated %d events from %d sources (%d failed)",
            len(merged), len(sources), len(report.failures)
        )
        return [event for _, event in merged[:max(limit, 0)]]

    def _events_for_source(
        self,
        source: CalendarSource,
        window: TimeWindow,
        force: bool
    ) -> list[NormalizedEvent]:
        """Fetch one source and turn its content into normalized events."""
        entry = self.fetcher.get_feed(source, force=force)
        if entry.kind is FeedKind.CLOUD_JSON:
            return normalize_events(entry.content, source, window, self.timezone)
        return events_from_ical(entry.content, source, window, self.timezone)

    def _log_failure(self, source: CalendarSource, result: TaskResult) -> str:
        """Log a failed source and return a short description."""
        error = result.error
        if result.timed_out:
            message = f"timed out: {error}"
            logger.warning("Calendar %s (%s) %s", source.id, source.name, message)
        elif isinstance(error, FetchError):
            message = f"fetch failed: {error.message}"
            logger.warning("Calendar %s (%s) %s", source.id, source.name, message)
        elif isinstance(error, ParseError):
            message = f"parse failed: {error}"
            logger.warning("Calendar %s (%s) %s", source.id, source.name, message)
        else:
            message = f"unexpected error: {type(error).__name__}: {error}"
            logger.error(
                "Calendar %s (%s) %s", source.id, source.name, message, exc_info=error
            )
        return message
