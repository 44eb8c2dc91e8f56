from __future__ import annotations

from dropcache.models.cache import (
    SNAPSHOT_VERSION,
    CacheEntry,
    CacheHealth,
    CacheSnapshot,
    CacheStats,
    SearchResult,
)
from dropcache.models.monster import DropRecord, MonsterRecord, WikiPage

__all__ = [
    # monster
    "DropRecord",
    "MonsterRecord",
    "WikiPage",
    # cache
    "SNAPSHOT_VERSION",
    "CacheEntry",
    "CacheStats",
    "CacheHealth",
    "SearchResult",
    "CacheSnapshot",
]
