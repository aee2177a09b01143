"""
Fetch cache for calendar feeds.

One entry per source id holding the last successfully fetched content.
Entries are immutable and replaced wholesale. An optional JSON directory
keeps the last-known-good content across restarts.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .formats import FeedKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedCacheEntry:
    """Last successful fetch of one calendar source."""
    source_id: str
    kind: FeedKind
    content: Union[str, list]  # iCalendar text or decoded JSON event list
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        """Seconds elapsed since the fetch."""
        return (now - self.fetched_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "kind": self.kind.value,
            "content": self.content,
            "fetched_at": self.fetched_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'FeedCacheEntry':
        return cls(
            source_id=data["source_id"],
            kind=FeedKind(data["kind"]),
            content=data["content"],
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
        )


class FeedCache:
    """
    Per-source feed cache.

    Structure of the optional persistent directory:
    - {cache_dir}/feeds/{source_id}.json - last entry for each source

    Tasks touching different source ids never contend on anything but the
    dict assignment; replacements of the same id are last-write-wins.
    """

    def __init__(self, cache_dir: Optional[Path] = None):
        self._entries: dict[str, FeedCacheEntry] = {}
        self._lock = threading.Lock()
        self._feeds_dir: Optional[Path] = None

        if cache_dir is not None:
            self._feeds_dir = Path(cache_dir) / "feeds"
            self._feeds_dir.mkdir(parents=True, exist_ok=True)
            self._load_all()

    # ==================== Access ====================

    def get(self, source_id: str) -> Optional[FeedCacheEntry]:
        """Get the cached entry for a source, if any."""
        return self._entries.get(source_id)

    def put(self, entry: FeedCacheEntry) -> None:
        """Replace the entry for ``entry.source_id``."""
        with self._lock:
            self._entries[entry.source_id] = entry
        if self._feeds_dir is not None:
            self._save(entry)

    # ==================== Persistence ====================

    def _entry_file(self, source_id: str) -> Path:
        """Convert source_id to a safe file path."""
        return self._feeds_dir / (source_id.replace(":", "_").replace("/", "_") + ".json")

    def _save(self, entry: FeedCacheEntry) -> None:
        """Write an entry to disk, replacing the previous file atomically."""
        target = self._entry_file(entry.source_id)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self._feeds_dir, suffix=".tmp")
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(entry.to_dict(), f, ensure_ascii=False)
            os.replace(tmp_path, target)
        except OSError as e:
            logger.warning("Could not persist cache entry for %s: %s", entry.source_id, e)

    def _load_all(self) -> None:
        """Load all persisted entries into memory."""
        for path in self._feeds_dir.glob("*.json"):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    entry = FeedCacheEntry.from_dict(json.load(f))
            except (OSError, ValueError, KeyError) as e:
                logger.warning("Ignoring unreadable cache file %s: %s", path.name, e)
                continue
            self._entries[entry.source_id] = entry
        logger.debug("Loaded %d cached feeds from %s", len(self._entries), self._feeds_dir)
