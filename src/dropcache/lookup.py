"""Read-through monster lookup: cache first, the live wiki on a miss.

The cache never talks to the wiki itself. This module owns the orchestration:
search the cache, and when it has nothing, find candidate titles on the wiki,
fetch and parse them, and write the survivors back so the next search hits.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import structlog

from dropcache.errors import DropCacheError
from dropcache.ingest import DEFAULT_BASE_URL, fetch_monster

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dropcache.cache import MonsterCache
    from dropcache.models.monster import MonsterRecord
    from dropcache.protocols import WikiClientProtocol

log = structlog.get_logger()

MONSTER_CATEGORY = "Category:Monsters"
MIN_CATEGORY_MATCHES = 8

# Opensearch also returns quests, music tracks and so on
NON_MONSTER_WORDS = (
    "quest",
    "diary",
    "achievement",
    "minigame",
    "activity",
    "guide",
    "music",
    "soundtrack",
    "chathead",
    "examine",
    "dialogue",
)


@dataclass
class LookupResult:
    search_term: str
    results: list[MonsterRecord] = field(default_factory=list)
    source: Literal["cache", "live", "none"] = "none"


def is_likely_non_monster(title: str) -> bool:
    lowered = title.lower()
    return any(word in lowered for word in NON_MONSTER_WORDS)


def rank_titles(titles: Iterable[str], query: str) -> list[str]:
    """Order titles: exact match, then prefix matches (shorter first), then A-Z."""
    query = query.lower()

    def sort_key(title: str) -> tuple[int, int, str]:
        lowered = title.lower()
        if lowered == query:
            return (0, 0, title)
        if lowered.startswith(query):
            return (1, len(title), title)
        return (2, 0, title)

    return sorted(titles, key=sort_key)


async def search_monster_names(
    client: WikiClientProtocol,
    query: str,
    limit: int,
    *,
    category: str = MONSTER_CATEGORY,
) -> list[str]:
    """Find up to ``limit`` wiki titles that plausibly name a monster."""
    query_lower = query.lower()
    members = await client.fetch_category_members(category, max_pages=1)
    titles = [title for title in members if query_lower in title.lower()]

    if len(titles) < MIN_CATEGORY_MATCHES:
        try:
            extra = await client.opensearch(query, limit * 2)
        except DropCacheError as exc:
            log.warning("lookup_opensearch_failed", query=query, error=exc.message)
            extra = []
        seen = set(titles)
        for title in extra:
            if title not in seen and not is_likely_non_monster(title):
                titles.append(title)
                seen.add(title)

    return rank_titles(titles, query)[:limit]


async def search_monsters(
    query: str,
    limit: int = 10,
    *,
    cache: MonsterCache,
    client: WikiClientProtocol,
    base_url: str = DEFAULT_BASE_URL,
    category: str = MONSTER_CATEGORY,
) -> LookupResult:
    """Search the cache; on a miss, search the wiki and cache what was found."""
    if not query.strip():
        return LookupResult(search_term=query)

    cached = cache.search(query, limit)
    if cached.from_cache:
        log.info("lookup_cache_hit", query=query, results=len(cached.results))
        return LookupResult(search_term=query, results=cached.results, source="cache")

    log.info("lookup_cache_miss", query=query)
    titles = await search_monster_names(client, query, limit * 2, category=category)
    if not titles:
        return LookupResult(search_term=query)

    async def fetch_one(title: str) -> MonsterRecord | None:
        try:
            return await fetch_monster(client, title, base_url=base_url)
        except DropCacheError as exc:
            log.warning("lookup_fetch_failed", title=title, error=exc.message)
            return None

    fetched = await asyncio.gather(*(fetch_one(title) for title in titles[:limit]))
    monsters = [monster for monster in fetched if monster is not None and monster.drops]

    cache.put_many(monsters)
    log.info("lookup_live_complete", query=query, candidates=len(titles), results=len(monsters))
    return LookupResult(search_term=query, results=monsters, source="live")
