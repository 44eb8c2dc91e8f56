from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Snapshot documents use camelCase keys; Python code uses field names.
_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DropRecord(BaseModel):
    """One concrete drop possibility parsed from a drop table."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    quantity: str  # "1", "1-3", "25;50" ... never normalised
    rarity: str  # "Always", "1/128", "1/128 (19/79)", "1/128 then 1/33.8" ...
    category: str  # Section heading, "Unknown", or "Tertiary"
    image_url: str | None = None


class MonsterRecord(BaseModel):
    """A wiki page's full parsed payload."""

    model_config = _CAMEL

    title: str
    url: str
    extract: str | None = None
    image: str | None = None
    drops: list[DropRecord] = []  # Source order, never re-sorted
    combat_level: int | None = None
    hitpoints: int | None = None


class WikiPage(BaseModel):
    """Raw page content returned by the wiki API."""

    title: str
    wikitext: str = ""
    extract: str | None = None
    image: str | None = None
