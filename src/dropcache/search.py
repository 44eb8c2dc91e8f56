"""Ranked keyword search over the record store.

Pure in-memory logic: receives a RecordStore and its KeywordIndex, returns
SearchResult values. No knowledge of the wiki, persistence, or the CLI.

Scoring walks the index once. For each keyword:
  - keyword == query          → +100 to every title holding it
  - keyword startswith query  → +50 when lengths match, else +25
  - query inside keyword      → +10, only while fewer than 2 × limit
                                distinct candidates have been collected
Ranking is score descending, then shorter titles, then alphabetical.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from dropcache.errors import DropCacheError, ErrorCode
from dropcache.models.cache import SearchResult

if TYPE_CHECKING:
    from dropcache.index import KeywordIndex
    from dropcache.store import RecordStore

log = structlog.get_logger()

EXACT_SCORE = 100
SAME_LENGTH_PREFIX_SCORE = 50
PREFIX_SCORE = 25
SUBSTRING_SCORE = 10


@dataclass
class SearchMetrics:
    searches: int = 0
    hits: int = 0
    misses: int = 0
    total_time_ms: float = 0.0

    @property
    def hit_rate(self) -> float:
        return self.hits / self.searches if self.searches else 0.0

    @property
    def average_search_time_ms(self) -> float:
        return self.total_time_ms / self.searches if self.searches else 0.0


class SearchEngine:
    def __init__(self, store: RecordStore, index: KeywordIndex | None = None) -> None:
        self._store = store
        self._index = index if index is not None else store.index
        self.metrics = SearchMetrics()

    def search(self, query: str, limit: int = 10) -> SearchResult:
        """Search cached titles. ``from_cache`` is False only on a miss."""
        if limit < 1:
            raise DropCacheError(
                code=ErrorCode.INVALID_INPUT,
                message=f"Search limit must be at least 1, got {limit}",
                suggestion="Pass a positive result limit.",
            )

        if not query.strip():
            return SearchResult(results=[], from_cache=True)

        started = time.perf_counter()
        self._store.sweep_expired()

        scores = self._score(query.lower(), limit)
        ranked = sorted(scores, key=lambda title: (-scores[title], len(title), title))

        results = []
        for title in ranked[:limit]:
            entry = self._store.get(title)
            if entry is not None:
                results.append(entry.to_monster())

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._record(hit=bool(results), elapsed_ms=elapsed_ms)
        log.debug(
            "cache_search",
            query=query,
            results=len(results),
            candidates=len(scores),
            elapsed_ms=round(elapsed_ms, 3),
        )
        return SearchResult(results=results, from_cache=bool(results))

    def _score(self, query: str, limit: int) -> dict[str, int]:
        scores: dict[str, int] = {}
        alive: dict[str, bool] = {}
        candidate_cap = limit * 2

        # get() may delete expired titles from the index, so iterate over a copy
        for keyword, titles in list(self._index.entries()):
            if keyword == query:
                points = EXACT_SCORE
            elif keyword.startswith(query):
                points = SAME_LENGTH_PREFIX_SCORE if len(keyword) == len(query) else PREFIX_SCORE
            elif len(scores) < candidate_cap and query in keyword:
                points = SUBSTRING_SCORE
            else:
                continue

            for title in tuple(titles):
                if title not in alive:
                    alive[title] = self._store.get(title) is not None
                if alive[title]:
                    scores[title] = scores.get(title, 0) + points

        return scores

    def _record(self, *, hit: bool, elapsed_ms: float) -> None:
        self.metrics.searches += 1
        self.metrics.total_time_ms += elapsed_ms
        if hit:
            self.metrics.hits += 1
        else:
            self.metrics.misses += 1

    def reset_metrics(self) -> None:
        self.metrics = SearchMetrics()
