"""Integration test fixtures.

Provides a respx-backed fake of the wiki's api.php that answers the four
request shapes WikiClient sends, and Settings pointing every data path at an
isolated tmp directory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from dropcache.config import CacheSettings, LoggingSettings, Settings

if TYPE_CHECKING:
    from pathlib import Path

    from dropcache.config import WikiSettings

API = "https://oldschool.runescape.wiki/api.php"

HILL_GIANT_WIKITEXT = """{{Infobox Monster
|combat = 28
|hitpoints = 35
}}
===100%===
{{DropsLine|name=Big bones|quantity=1|rarity=Always}}
===Herbs===
{{HerbDropLines|1/8}}
===Seeds===
{{RareSeedDropLines|1/21}}
===Tertiary===
{{DropsLineClue|type=beginner|rarity=1/60}}
"""

GOBLIN_WIKITEXT = """{{Infobox Monster
|combat = 2
|hitpoints = 5
}}
===100%===
{{DropsLine|name=Bones|quantity=1|rarity=Always}}
{{DropsLine|name=Coins|quantity=5|rarity=3/128}}
"""


class FakeWikiApi:
    """Dispatches api.php requests by their query parameters."""

    def __init__(self, pages: dict[str, str], category: list[str]) -> None:
        self.pages = pages
        self.category = category
        self.page_requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if params.get("list") == "categorymembers":
            members = [{"title": title} for title in self.category]
            return httpx.Response(200, json={"query": {"categorymembers": members}})

        if params.get("action") == "opensearch":
            query = params["search"].lower()
            titles = [t for t in self.pages if t.lower().startswith(query)]
            return httpx.Response(200, json=[params["search"], titles, [], []])

        if params.get("prop") == "pageimages":
            pages = {
                str(i): {"title": name, "original": {"source": f"https://img.example/{name}.png"}}
                for i, name in enumerate(params["titles"].split("|"), start=1)
            }
            return httpx.Response(200, json={"query": {"pages": pages}})

        title = params["titles"]
        self.page_requests.append(title)
        if title not in self.pages:
            return httpx.Response(
                200, json={"query": {"pages": {"-1": {"title": title, "missing": ""}}}}
            )
        page = {
            "pageid": 100,
            "title": title,
            "revisions": [{"*": self.pages[title]}],
            "extract": f"{title} is a monster.",
        }
        return httpx.Response(200, json={"query": {"pages": {"100": page}}})


@pytest.fixture()
def wiki_api() -> FakeWikiApi:
    return FakeWikiApi(
        pages={
            "Hill Giant": HILL_GIANT_WIKITEXT,
            "Goblin": GOBLIN_WIKITEXT,
            "Lumbridge": "Lumbridge is a town.",
        },
        category=["Goblin", "Hill Giant", "Lumbridge", "Moss giant"],
    )


@pytest.fixture()
def cli_settings(tmp_path: Path, wiki_settings: WikiSettings) -> Settings:
    return Settings(
        cache=CacheSettings(
            snapshot_path=str(tmp_path / "monster-cache.json"),
            db_path=str(tmp_path / "cache.db"),
        ),
        wiki=wiki_settings,
        logging=LoggingSettings(level="WARNING"),
    )
