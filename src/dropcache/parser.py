"""Wikitext drop-table parser.

Single-pass, line-oriented algorithm that extracts drop records from raw wiki
markup. ``===Heading===`` lines set the category for the drops that follow;
four template forms declare drops:

  {{DropsLine|name=...|quantity=...|rarity=...}}
  {{DropsLineClue|type=...|rarity=...}}
  {{HerbDropLines|<rate>}}
  {{RareSeedDropLines|<rate>}}

The herb and rare-seed macros expand into fixed sub-tables. Quantity and
rarity strings are copied verbatim; consumers parse them lazily.
"""

from __future__ import annotations

import re
from urllib.parse import quote

from dropcache.models.monster import DropRecord

UNKNOWN_CATEGORY = "Unknown"
TERTIARY_CATEGORY = "Tertiary"

_HEADING_RE = re.compile(r"^===(?!=)(.+?)(?<!=)===$")
_TEMPLATE_RE = re.compile(
    r"\{\{(DropsLine|DropsLineClue|HerbDropLines|RareSeedDropLines)\|([^}]+)\}\}"
)
_COMBAT_RE = re.compile(r"\|combat\s*=\s*(\d+)", re.IGNORECASE)
_HITPOINTS_RE = re.compile(r"\|hitpoints\s*=\s*(\d+)", re.IGNORECASE)

# Characters left unescaped in page URLs
_URL_SAFE = "-_.!~*'()"

# (name, weight); weights only shape the rarity string
HERB_TABLE: tuple[tuple[str, int], ...] = (
    ("Grimy guam leaf", 19),
    ("Grimy marrentill", 15),
    ("Grimy tarromin", 12),
    ("Grimy harralander", 9),
    ("Grimy ranarr weed", 6),
    ("Grimy toadflax", 4),
    ("Grimy irit leaf", 4),
    ("Grimy avantoe", 3),
    ("Grimy kwuarm", 2),
    ("Grimy snapdragon", 2),
    ("Grimy cadantine", 1),
    ("Grimy lantadyme", 1),
    ("Grimy dwarf weed", 1),
)
HERB_TOTAL_WEIGHT = sum(weight for _, weight in HERB_TABLE)
HERB_QUANTITY = "1-3"

# (name, rarity, quantity)
RARE_SEED_TABLE: tuple[tuple[str, str, str], ...] = (
    ("Toadflax seed", "1/33.8", "1"),
    ("Irit seed", "1/49.7", "1"),
    ("Belladonna seed", "1/51.3", "1"),
    ("Poison ivy seed", "1/72.3", "1"),
    ("Avantoe seed", "1/72.3", "1"),
    ("Cactus seed", "1/75.7", "1"),
    ("Potato cactus seed", "1/106", "1"),
    ("Kwuarm seed", "1/106", "1"),
    ("Snapdragon seed", "1/159", "1"),
    ("Cadantine seed", "1/227.1", "1"),
    ("Lantadyme seed", "1/318", "1"),
    ("Snape grass seed", "1/397.5", "3"),
    ("Dwarf weed seed", "1/530", "1"),
    ("Torstol seed", "1/794.9", "1"),
)


def parse_template_params(param_string: str) -> dict[str, str]:
    """Parse ``key=value|key=value|...`` into a dict.

    Pieces without ``=`` are stored under their position: the first under
    ``"0"``, later ones under ``str(index)``. Only the first ``=`` splits; the
    rest of the value is kept literally. Malformed input degrades to a partial
    mapping, never an error.
    """
    params: dict[str, str] = {}
    for index, piece in enumerate(param_string.split("|")):
        key, sep, value = piece.partition("=")
        if sep and key:
            params[key.strip()] = value.strip()
        else:
            params[str(index)] = piece.strip()
    return params


def herb_drops(base_rate: str, category: str) -> list[DropRecord]:
    return [
        DropRecord(
            name=name,
            quantity=HERB_QUANTITY,
            rarity=f"{base_rate} ({weight}/{HERB_TOTAL_WEIGHT})",
            category=category,
        )
        for name, weight in HERB_TABLE
    ]


def rare_seed_drops(base_rate: str, category: str) -> list[DropRecord]:
    return [
        DropRecord(
            name=name,
            quantity=quantity,
            rarity=f"{base_rate} then {rarity}",
            category=category,
        )
        for name, rarity, quantity in RARE_SEED_TABLE
    ]


def _base_rate(params: dict[str, str]) -> str:
    return params.get("0") or params.get("1") or "Unknown"


def _expand_template(name: str, params: dict[str, str], category: str) -> list[DropRecord]:
    if name == "DropsLine":
        item = params.get("name")
        if not item:
            return []
        return [
            DropRecord(
                name=item,
                quantity=params.get("quantity") or "1",
                rarity=params.get("rarity") or "Unknown",
                category=category,
            )
        ]

    if name == "DropsLineClue":
        return [
            DropRecord(
                name=f"{params.get('type') or 'Unknown'} clue scroll",
                quantity="1",
                rarity=params.get("rarity") or "Unknown",
                category=TERTIARY_CATEGORY,
            )
        ]

    if name == "HerbDropLines":
        return herb_drops(_base_rate(params), category)

    return rare_seed_drops(_base_rate(params), category)


def parse_drops(wikitext: str) -> list[DropRecord]:
    """Extract drop records from raw wikitext, in order of appearance.

    An empty list means no drop declarations were found, which callers treat
    as "this page is not a monster".
    """
    drops: list[DropRecord] = []
    current_category = UNKNOWN_CATEGORY

    for raw_line in wikitext.split("\n"):
        line = raw_line.strip()

        heading = _HEADING_RE.match(line)
        if heading:
            current_category = heading.group(1).strip()
            continue

        for match in _TEMPLATE_RE.finditer(line):
            params = parse_template_params(match.group(2))
            drops.extend(_expand_template(match.group(1), params, current_category))

    return drops


def parse_combat_stats(wikitext: str) -> tuple[int | None, int | None]:
    """Return ``(combat_level, hitpoints)`` from the first infobox values found."""
    combat = _COMBAT_RE.search(wikitext)
    hitpoints = _HITPOINTS_RE.search(wikitext)
    return (
        int(combat.group(1)) if combat else None,
        int(hitpoints.group(1)) if hitpoints else None,
    )


def monster_url(title: str, base_url: str) -> str:
    """Derive the canonical page URL: spaces to underscores, then percent-encode."""
    path = quote(title.replace(" ", "_"), safe=_URL_SAFE)
    return f"{base_url.rstrip('/')}/w/{path}"
