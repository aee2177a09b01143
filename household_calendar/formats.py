"""
Feed format detection.

The fetcher decides how a response is parsed from its declared content
type. Detection lives behind FormatDetector so a different strategy can be
plugged in without touching the parser or the normalizer.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


class FeedKind(Enum):
    """How fetched content must be interpreted."""
    ICALENDAR = "icalendar"
    CLOUD_JSON = "cloud_json"


class FormatDetector(ABC):
    """Decides the FeedKind of a fetched response."""

    @abstractmethod
    def detect(self, content_type: Optional[str]) -> FeedKind:
        """Return the kind of content for a response's content type."""
        pass


class ContentTypeDetector(FormatDetector):
    """
    Content-type sniffing: JSON media types are cloud event lists,
    everything else is iCalendar text.
    """

    def detect(self, content_type: Optional[str]) -> FeedKind:
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        if media_type == "application/json" or media_type.endswith("+json"):
            return FeedKind.CLOUD_JSON
        return FeedKind.ICALENDAR
