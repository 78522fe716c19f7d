"""
Cache of fetched timestamp sequences, keyed by blog and scope.

Entries are invalidated when the feed's last-updated marker changes; a stale entry
is replaced wholesale, never merged.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from context import Scope, scope_token
from database import get_db, init_db


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached timestamp sequence and the feed state it was fetched at."""
    updated: Optional[str]
    total_items: int
    timestamps: List[Optional[str]] = field(default_factory=list)


def cache_key(namespace: str, home_url: str, scope: Scope) -> str:
    """
    Derive the cache key for a blog and scope.

    Scope tokens may carry arbitrary label names and search queries, so they are
    hashed into a fixed-width, storage-safe key.
    """
    digest = hashlib.sha256(f"{home_url}|{scope_token(scope)}".encode("utf-8")).hexdigest()
    return f"{namespace}:{digest[:16]}"


def is_stale(entry: Optional[CacheEntry], updated: Optional[str]) -> bool:
    """True when there is no entry or the feed has changed since it was stored."""
    if entry is None:
        return True
    return entry.updated != updated


class TimestampCache:
    """Key/value store interface for cached timestamp sequences."""

    def get(self, key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    def put(self, key: str, entry: CacheEntry) -> None:
        raise NotImplementedError


class MemoryTimestampCache(TimestampCache):
    """Process-lifetime cache held in a dict."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry


class SqliteTimestampCache(TimestampCache):
    """Cache persisted in the sqlite timestamp_cache table."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path
        init_db(db_path)

    def get(self, key: str) -> Optional[CacheEntry]:
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT updated, total_items, timestamps FROM timestamp_cache WHERE cache_key = ?",
                (key,)
            ).fetchone()

        if not row:
            return None

        try:
            timestamps = json.loads(row["timestamps"])
        except ValueError:
            logger.warning(f"Discarding unreadable cache entry {key}")
            return None

        return CacheEntry(
            updated=row["updated"],
            total_items=row["total_items"],
            timestamps=timestamps,
        )

    def put(self, key: str, entry: CacheEntry) -> None:
        with get_db(self.db_path) as conn:
            conn.execute("""
                INSERT INTO timestamp_cache (cache_key, updated, total_items, timestamps, stored_at)
                VALUES (?, ?, ?, ?, datetime('now'))
                ON CONFLICT(cache_key) DO UPDATE SET
                    updated = excluded.updated,
                    total_items = excluded.total_items,
                    timestamps = excluded.timestamps,
                    stored_at = excluded.stored_at
            """, (key, entry.updated, entry.total_items, json.dumps(entry.timestamps)))
