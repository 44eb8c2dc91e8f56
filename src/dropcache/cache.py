"""Monster cache: the query interface over RecordStore + KeywordIndex + SearchEngine.

One instance is constructed per process and passed to whatever owns the
request boundary (the CLI, the read-through lookup, the ingestion pipeline).
TTL and capacity are plain configuration.

Snapshot import degrades rather than fails: a version mismatch or a document
that does not validate is logged and skipped, leaving the cache untouched.
Only text that is not JSON at all raises ``DropCacheError``.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from dropcache.errors import DropCacheError, ErrorCode
from dropcache.index import KeywordIndex
from dropcache.models.cache import (
    SNAPSHOT_VERSION,
    CacheHealth,
    CacheSnapshot,
    CacheStats,
    SearchResult,
)
from dropcache.search import SearchEngine
from dropcache.store import DEFAULT_MAX_ENTRIES, DEFAULT_TTL, RecordStore, utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from dropcache.models.cache import CacheEntry
    from dropcache.models.monster import MonsterRecord
    from dropcache.store import Clock

log = structlog.get_logger()

STALE_AFTER = timedelta(days=1)
VERY_STALE_AFTER = timedelta(days=7)


class MonsterCache:
    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.index = KeywordIndex()
        self.store = RecordStore(
            ttl,
            max_entries,
            index=self.index,
            clock=clock,
            on_change=self._refresh_stats,
        )
        self.engine = SearchEngine(self.store, self.index)
        self._stats = CacheStats()

    # ------------------------------------------------------------------
    # Query interface
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 10) -> SearchResult:
        result = self.engine.search(query, limit)
        self._stats.cache_hit_rate = self.engine.metrics.hit_rate
        self._stats.average_search_time_ms = self.engine.metrics.average_search_time_ms
        return result

    def get(self, title: str) -> MonsterRecord | None:
        entry = self.store.get(title)
        return entry.to_monster() if entry is not None else None

    def get_entry(self, title: str) -> CacheEntry | None:
        return self.store.get(title)

    def has(self, title: str) -> bool:
        return self.store.has(title)

    def put(self, monster: MonsterRecord) -> bool:
        """Cache a monster under its title. Zero-drop records are rejected."""
        if not monster.drops:
            log.debug("cache_put_rejected", title=monster.title, reason="no_drops")
            return False
        self.store.put(monster.title, monster)
        return True

    def put_many(self, monsters: Iterable[MonsterRecord]) -> int:
        stored = sum(1 for monster in monsters if self.put(monster))
        log.info("cache_put_many", stored=stored, total_entries=len(self.store))
        return stored

    def remove(self, title: str) -> bool:
        return self.store.remove(title)

    def clear(self) -> None:
        self.store.clear()
        self.engine.reset_metrics()
        self._stats = CacheStats()

    def stale_titles(self, max_age: timedelta = STALE_AFTER) -> list[str]:
        return self.store.stale_titles(max_age)

    def titles(self) -> list[str]:
        return self.store.titles()

    def __len__(self) -> int:
        return len(self.store)

    # ------------------------------------------------------------------
    # Stats & health
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        return self._stats.model_copy()

    def _refresh_stats(self) -> None:
        self._stats.total_entries = len(self.store)
        self._stats.last_refresh_timestamp = self.store.now()

    def health(self, now: datetime | None = None) -> CacheHealth:
        now = now if now is not None else self.store.now()
        age = now - self._stats.last_refresh_timestamp
        is_stale = age > STALE_AFTER
        is_very_stale = age > VERY_STALE_AFTER

        if self._stats.total_entries == 0:
            status = "empty"
        elif is_very_stale:
            status = "very_stale"
        elif is_stale:
            status = "stale"
        else:
            status = "healthy"

        return CacheHealth(
            status=status,
            cache_age_ms=int(age.total_seconds() * 1000),
            is_stale=is_stale,
            is_very_stale=is_very_stale,
            refresh_needed=is_stale,
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            version=SNAPSHOT_VERSION,
            monsters=list(self.store.entries()),
            search_index=self.index.to_pairs(),
            stats=self.stats(),
        )

    def export_snapshot(self) -> str:
        return self.to_snapshot().model_dump_json(by_alias=True, indent=2)

    def load_snapshot(self, snapshot: CacheSnapshot) -> bool:
        """Merge a validated snapshot into the cache."""
        if snapshot.version != SNAPSHOT_VERSION:
            log.warning(
                "snapshot_version_mismatch",
                expected=SNAPSHOT_VERSION,
                found=snapshot.version,
            )
            return False

        for title, entry in snapshot.monsters:
            self.store.load_entry(title, entry)
        self.store.enforce_capacity()

        # Back-references are rebuilt from entry keywords; the stored index
        # is only cross-checked.
        dangling = sum(
            1
            for _, titles in snapshot.search_index
            for title in titles
            if title not in self.store
        )
        if dangling:
            log.warning("snapshot_index_dangling_titles", count=dangling)

        self._stats = snapshot.stats.model_copy()
        self._stats.total_entries = len(self.store)
        log.info("snapshot_loaded", monsters=len(snapshot.monsters), total_entries=len(self.store))
        return True

    def import_snapshot(self, data: str | bytes) -> bool:
        """Apply a JSON snapshot. Returns False when it was skipped.

        Raises DropCacheError only when ``data`` is not valid JSON.
        """
        try:
            raw = json.loads(data)
        except ValueError as exc:
            raise DropCacheError(
                code=ErrorCode.SNAPSHOT_MALFORMED,
                message=f"Failed to import cache data: {exc}",
                suggestion="Pass the text produced by export_snapshot().",
                recoverable=False,
            ) from exc

        if not isinstance(raw, dict):
            log.warning("snapshot_invalid", reason="not_an_object")
            return False

        version = raw.get("version")
        if version != SNAPSHOT_VERSION:
            log.warning("snapshot_version_mismatch", expected=SNAPSHOT_VERSION, found=version)
            return False

        try:
            snapshot = CacheSnapshot.model_validate(raw)
        except ValidationError:
            log.warning("snapshot_invalid", reason="schema", exc_info=True)
            return False

        return self.load_snapshot(snapshot)
