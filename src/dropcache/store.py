"""In-memory record store with TTL expiry and a capacity bound.

The store is the single source of truth for which titles are cached. Every
mutation keeps the KeywordIndex in step: a title's back-references are taken
from its own entry's keyword list, so ``put`` touches exactly one title's
keywords and needs no external locking on a single event loop.

Expiry is lazy. ``get`` and ``has`` delete an expired entry when they meet it,
and ``sweep_expired`` clears everything past its ``expires_at`` in one go.
Capacity eviction drops the entries with the oldest ``last_updated`` (write
time, not read time) until the store is back under ``max_entries``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from itertools import islice

import structlog

from dropcache.index import KeywordIndex, generate_keywords
from dropcache.models.cache import CacheEntry
from dropcache.models.monster import MonsterRecord

log = structlog.get_logger()

DEFAULT_TTL = timedelta(hours=24)
DEFAULT_MAX_ENTRIES = 1000

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class RecordStore:
    """Title → CacheEntry table owning entry lifetime."""

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        index: KeywordIndex | None = None,
        clock: Clock = utc_now,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.ttl = ttl
        self.max_entries = max_entries
        self.index = index if index is not None else KeywordIndex()
        self._clock = clock
        self._on_change = on_change
        # Dict order doubles as write order; put() re-inserts at the end.
        self._entries: dict[str, CacheEntry] = {}
        # True while dict order is also ascending last_updated order.
        self._age_ordered = True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, title: str, record: MonsterRecord) -> CacheEntry:
        """Create or fully replace the entry for ``title``."""
        now = self._clock()
        fields = {name: getattr(record, name) for name in MonsterRecord.model_fields}
        fields["title"] = title
        entry = CacheEntry(
            **fields,
            last_updated=now,
            expires_at=now + self.ttl,
            search_keywords=generate_keywords(title),
        )

        if self._entries and now < next(reversed(self._entries.values())).last_updated:
            self._age_ordered = False
        self._insert(title, entry)
        log.debug("cache_put", title=title, drops=len(entry.drops))
        self._enforce_capacity()
        self._changed()
        return entry

    def load_entry(self, title: str, entry: CacheEntry) -> None:
        """Insert a deserialised entry, keeping its timestamps.

        Capacity is not enforced here; call :meth:`enforce_capacity` once the
        whole batch is loaded.
        """
        if not entry.search_keywords:
            entry = entry.model_copy(update={"search_keywords": generate_keywords(title)})
        self._insert(title, entry)
        self._age_ordered = False

    def _insert(self, title: str, entry: CacheEntry) -> None:
        previous = self._entries.pop(title, None)
        if previous is not None:
            self.index.remove_keywords(title, previous.search_keywords)
        self._entries[title] = entry
        self.index.add_keywords(title, entry.search_keywords)

    # ------------------------------------------------------------------
    # Reads (lazy expiry)
    # ------------------------------------------------------------------

    def get(self, title: str) -> CacheEntry | None:
        """Return the live entry for ``title``; expired entries are deleted."""
        entry = self._entries.get(title)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._delete(title)
            log.debug("cache_expired", title=title)
            self._changed()
            return None
        return entry

    def has(self, title: str) -> bool:
        return self.get(title) is not None

    def stale_titles(self, max_age: timedelta) -> list[str]:
        """Titles whose last write is older than ``max_age``. Read-only."""
        now = self._clock()
        return [
            title for title, entry in self._entries.items() if now - entry.last_updated > max_age
        ]

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def remove(self, title: str) -> bool:
        if title not in self._entries:
            return False
        self._delete(title)
        self._changed()
        return True

    def clear(self) -> None:
        self._entries.clear()
        self.index.clear()
        self._age_ordered = True

    def sweep_expired(self) -> list[str]:
        """Delete every expired entry and return the removed titles."""
        now = self._clock()
        expired = [title for title, entry in self._entries.items() if entry.is_expired(now)]
        for title in expired:
            self._delete(title)

        if expired:
            log.info("cache_expired_swept", removed=len(expired))
            self._changed()
        return expired

    def enforce_capacity(self) -> list[str]:
        evicted = self._enforce_capacity()
        if evicted:
            self._changed()
        return evicted

    def _enforce_capacity(self) -> list[str]:
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return []

        if not self._age_ordered:
            self._reorder_by_age()
        evicted = list(islice(self._entries, overflow))
        for title in evicted:
            self._delete(title)

        log.info("cache_evicted", removed=len(evicted), max_entries=self.max_entries)
        return evicted

    def _reorder_by_age(self) -> None:
        # sorted() is stable, so equal timestamps keep their write order
        oldest_first = sorted(self._entries.items(), key=lambda item: item[1].last_updated)
        self._entries = dict(oldest_first)
        self._age_ordered = True

    def _delete(self, title: str) -> None:
        entry = self._entries.pop(title)
        self.index.remove_keywords(title, entry.search_keywords)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    # ------------------------------------------------------------------
    # Introspection (raw, no expiry)
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def titles(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> Iterator[tuple[str, CacheEntry]]:
        return iter(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, title: object) -> bool:
        return title in self._entries
