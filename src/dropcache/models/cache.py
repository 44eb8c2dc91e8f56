from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from dropcache.models.monster import MonsterRecord

SNAPSHOT_VERSION = "1.0"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class CacheEntry(MonsterRecord):
    """A cached MonsterRecord plus its freshness metadata."""

    last_updated: AwareDatetime
    expires_at: AwareDatetime  # last_updated + TTL
    search_keywords: list[str] = []

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_monster(self) -> MonsterRecord:
        return MonsterRecord(**{name: getattr(self, name) for name in MonsterRecord.model_fields})


class CacheStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_entries: int = 0
    last_refresh_timestamp: AwareDatetime = _EPOCH
    cache_hit_rate: float = 0.0
    average_search_time_ms: float = 0.0


class CacheHealth(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Literal["empty", "healthy", "stale", "very_stale"]
    cache_age_ms: int
    is_stale: bool
    is_very_stale: bool
    refresh_needed: bool


class SearchResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    results: list[MonsterRecord] = []
    from_cache: bool


class CacheSnapshot(BaseModel):
    """Versioned, serialisable image of the whole cache."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: str = SNAPSHOT_VERSION
    monsters: list[tuple[str, CacheEntry]] = []
    search_index: list[tuple[str, list[str]]] = []
    stats: CacheStats = CacheStats()
