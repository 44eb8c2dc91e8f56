"""Bulk ingestion: wiki pages → parsed monster records → cache.

Titles are processed in batches; the titles in one batch are fetched
concurrently and the next batch starts when the whole batch is done. The
WikiClient's throttle still spaces the individual requests. A title whose
fetch fails after retries is recorded in the report and skipped; the run
carries on with the remaining titles.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from dropcache.errors import DropCacheError
from dropcache.models.monster import DropRecord, MonsterRecord
from dropcache.parser import monster_url, parse_combat_stats, parse_drops

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dropcache.cache import MonsterCache
    from dropcache.config import WikiSettings
    from dropcache.models.monster import WikiPage
    from dropcache.protocols import WikiClientProtocol

log = structlog.get_logger()

DEFAULT_BASE_URL = "https://oldschool.runescape.wiki"


@dataclass
class IngestFailure:
    title: str
    error: str


@dataclass
class IngestReport:
    fetched: int = 0
    skipped: int = 0  # pages without drops, or missing pages
    failures: list[IngestFailure] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.fetched + self.skipped + len(self.failures)


def build_monster(page: WikiPage, base_url: str = DEFAULT_BASE_URL) -> MonsterRecord | None:
    """Parse a wiki page into a MonsterRecord; ``None`` when it has no drops."""
    drops = parse_drops(page.wikitext)
    if not drops:
        return None

    combat_level, hitpoints = parse_combat_stats(page.wikitext)
    return MonsterRecord(
        title=page.title,
        url=monster_url(page.title, base_url),
        extract=page.extract,
        image=page.image,
        drops=drops,
        combat_level=combat_level,
        hitpoints=hitpoints,
    )


async def enrich_drop_images(
    client: WikiClientProtocol, drops: list[DropRecord]
) -> list[DropRecord]:
    """Attach ``image_url`` to each drop. Lookup failures leave drops unchanged."""
    names = list(dict.fromkeys(drop.name for drop in drops))
    try:
        images = await client.fetch_item_images(names)
    except DropCacheError as exc:
        log.warning("drop_images_unavailable", items=len(names), error=exc.message)
        return drops

    enriched = []
    for drop in drops:
        image_url = images.get(drop.name)
        enriched.append(drop.model_copy(update={"image_url": image_url}) if image_url else drop)
    return enriched


async def fetch_monster(
    client: WikiClientProtocol,
    title: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    with_images: bool = True,
) -> MonsterRecord | None:
    """Fetch and parse one page. Raises DropCacheError if the wiki is unreachable."""
    page = await client.fetch_page(title)
    if page is None:
        return None

    monster = build_monster(page, base_url)
    if monster is None:
        return None

    if with_images:
        monster.drops = await enrich_drop_images(client, monster.drops)
    return monster


async def ingest_titles(
    titles: Sequence[str],
    client: WikiClientProtocol,
    cache: MonsterCache,
    *,
    batch_size: int = 10,
    base_url: str = DEFAULT_BASE_URL,
    with_images: bool = True,
) -> IngestReport:
    report = IngestReport()
    batches = [titles[i : i + batch_size] for i in range(0, len(titles), batch_size)]

    async def ingest_one(title: str) -> None:
        try:
            monster = await fetch_monster(
                client, title, base_url=base_url, with_images=with_images
            )
        except DropCacheError as exc:
            report.failures.append(IngestFailure(title=title, error=exc.message))
            log.warning("ingest_title_failed", title=title, error=exc.message)
            return

        if monster is None or not cache.put(monster):
            report.skipped += 1
            log.debug("ingest_title_skipped", title=title, reason="no_drops")
            return

        report.fetched += 1
        log.debug("ingest_title_cached", title=monster.title, drops=len(monster.drops))

    for number, batch in enumerate(batches, start=1):
        await asyncio.gather(*(ingest_one(title) for title in batch))
        log.info(
            "ingest_batch_complete",
            batch=number,
            batches=len(batches),
            fetched=report.fetched,
            skipped=report.skipped,
            failed=len(report.failures),
        )

    log.info(
        "ingest_complete",
        processed=report.processed,
        fetched=report.fetched,
        skipped=report.skipped,
        failed=len(report.failures),
    )
    return report


async def build_cache(
    client: WikiClientProtocol,
    cache: MonsterCache,
    settings: WikiSettings,
    *,
    max_titles: int | None = None,
    with_images: bool = True,
) -> IngestReport:
    """Crawl the monster category and ingest every title found."""
    titles = await client.fetch_category_members(settings.category)
    log.info("ingest_titles_found", category=settings.category, titles=len(titles))
    if max_titles is not None:
        titles = titles[:max_titles]

    return await ingest_titles(
        titles,
        client,
        cache,
        batch_size=settings.batch_size,
        base_url=settings.base_url,
        with_images=with_images,
    )


async def refresh_stale(
    client: WikiClientProtocol,
    cache: MonsterCache,
    settings: WikiSettings,
    *,
    max_age: timedelta = timedelta(hours=24),
    with_images: bool = True,
) -> IngestReport:
    """Re-fetch every cached title last written more than ``max_age`` ago."""
    titles = cache.stale_titles(max_age)
    if not titles:
        log.info("refresh_not_needed", max_age_hours=max_age.total_seconds() / 3600)
        return IngestReport()

    log.info("refresh_stale_started", titles=len(titles))
    return await ingest_titles(
        titles,
        client,
        cache,
        batch_size=settings.batch_size,
        base_url=settings.base_url,
        with_images=with_images,
    )
