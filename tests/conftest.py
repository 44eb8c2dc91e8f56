"""Shared test fixtures for the dropcache test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from dropcache.cache import MonsterCache
from dropcache.config import WikiSettings
from dropcache.errors import DropCacheError, ErrorCode
from dropcache.models.monster import DropRecord, MonsterRecord, WikiPage

START = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for TTL and staleness tests."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def _make_monster(title: str, drops: int = 1) -> MonsterRecord:
    return MonsterRecord(
        title=title,
        url=f"https://oldschool.runescape.wiki/w/{title.replace(' ', '_')}",
        drops=[
            DropRecord(name=f"Item {i}", quantity="1", rarity="Always", category="100%")
            for i in range(drops)
        ],
    )


@pytest.fixture()
def make_monster():
    return _make_monster


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> MonsterCache:
    return MonsterCache(ttl=timedelta(hours=24), max_entries=1000, clock=clock)


@pytest.fixture()
def sample_monsters() -> list[MonsterRecord]:
    return [
        _make_monster("Giant rat"),
        _make_monster("Giant spider"),
        _make_monster("Fire giant"),
        _make_monster("Hill Giant"),
        _make_monster("Goblin"),
    ]


@pytest.fixture()
def wiki_settings() -> WikiSettings:
    """Wiki settings with every delay zeroed so retry tests run instantly."""
    return WikiSettings(
        request_delay_ms=0,
        rate_limit_wait_seconds=0,
        retry_backoff_seconds=0,
        max_retries=3,
        batch_size=2,
    )


GOBLIN_WIKITEXT = """{{Infobox Monster
|name = Goblin
|combat = 2
|hitpoints = 5
}}
===100%===
{{DropsLine|name=Bones|quantity=1|rarity=Always}}
===Weapons and armour===
{{DropsLine|name=Bronze spear|quantity=1|rarity=4/128}}
===Tertiary===
{{DropsLineClue|type=beginner|rarity=1/128}}
"""


class FakeWiki:
    """In-memory WikiClientProtocol: page title → wikitext."""

    def __init__(
        self,
        pages: dict[str, str],
        *,
        category: list[str] | None = None,
        search: list[str] | None = None,
        failing: tuple[str, ...] = (),
        images_fail: bool = False,
    ) -> None:
        self.pages = pages
        self.category = category if category is not None else list(pages)
        self.search_results = search or []
        self.failing = set(failing)
        self.images_fail = images_fail
        self.fetched: list[str] = []
        self.searched: list[str] = []

    async def fetch_category_members(
        self, category: str, *, max_pages: int | None = None
    ) -> list[str]:
        return list(self.category)

    async def fetch_page(self, title: str) -> WikiPage | None:
        self.fetched.append(title)
        if title in self.failing:
            raise DropCacheError(
                code=ErrorCode.WIKI_FETCH_FAILED,
                message=f"boom: {title}",
                suggestion="retry",
                recoverable=True,
            )
        wikitext = self.pages.get(title)
        if wikitext is None:
            return None
        return WikiPage(title=title, wikitext=wikitext, extract=f"{title} extract")

    async def fetch_item_images(self, names: list[str]) -> dict[str, str | None]:
        if self.images_fail:
            raise DropCacheError(
                code=ErrorCode.WIKI_FETCH_FAILED,
                message="images unavailable",
                suggestion="retry",
                recoverable=True,
            )
        return {name: f"https://img.example/{name}.png" for name in names}

    async def opensearch(self, query: str, limit: int) -> list[str]:
        self.searched.append(query)
        return self.search_results[:limit]


@pytest.fixture()
def goblin_wikitext() -> str:
    return GOBLIN_WIKITEXT


@pytest.fixture()
def make_wiki() -> type[FakeWiki]:
    return FakeWiki
