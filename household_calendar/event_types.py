"""
Core value types shared by the fetcher, parsers and aggregator.

CalendarSource describes where events come from, TimeWindow bounds a
request, NormalizedEvent is the single event shape handed to consumers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
import hashlib
import pytz


DEFAULT_COLOR = "primary"


@dataclass(frozen=True)
class CalendarSource:
    """
    A configured calendar source.

    Exactly one of ``url`` (iCalendar feed) or ``cloud_id`` (Google Calendar
    id) is set. Sources are immutable from the engine's point of view.
    """
    name: str
    url: Optional[str] = None
    cloud_id: Optional[str] = None
    color: str = DEFAULT_COLOR
    token_key: Optional[str] = None  # For cloud calendars
    id: str = ""

    def __post_init__(self):
        if bool(self.url) == bool(self.cloud_id):
            raise ValueError(
                f"Calendar source {self.name!r} needs exactly one of url or cloud_id"
            )
        if not self.id:
            object.__setattr__(self, 'id', self._generate_id())

    def _generate_id(self) -> str:
        """Generate a stable ID from the feed URL or cloud calendar id."""
        if self.url:
            return f"ics:{hashlib.md5(self.url.encode()).hexdigest()[:12]}"
        return f"google:{hashlib.md5(self.cloud_id.encode()).hexdigest()[:12]}"

    @property
    def is_cloud(self) -> bool:
        """True for cloud provider calendars."""
        return self.cloud_id is not None


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start, end)`` range of aware instants."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("TimeWindow bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError("TimeWindow end must not be before start")

    @classmethod
    def upcoming(cls, days: int, now: Optional[datetime] = None) -> 'TimeWindow':
        """
        Build the window from ``now`` to ``now + days``.

        Args:
            days: Length of the window in days
            now: Window start (default: current UTC time)
        """
        if now is None:
            now = datetime.now(pytz.UTC)
        return cls(start=now, end=now + timedelta(days=days))

    def contains(self, instant: datetime) -> bool:
        """Check whether an aware instant falls inside the window."""
        return self.start <= instant < self.end


@dataclass(frozen=True)
class NormalizedEvent:
    """
    Unified event representation produced for every source format.

    ``start`` is always a UTC instant. All-day events start at local
    midnight of the household timezone and have ``all_day`` set.
    """
    summary: str
    start: datetime
    calendar_id: str
    calendar_name: str
    color: str
    all_day: bool = False
    recurring: bool = False
    location: str = field(default="", compare=False)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "summary": self.summary,
            "start": self.start.isoformat(),
            "all_day": self.all_day,
            "recurring": self.recurring,
            "calendar_id": self.calendar_id,
            "calendar_name": self.calendar_name,
            "color": self.color,
            "location": self.location,
        }
