"""Command-line entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build AppState, restoring the cache from its snapshot store
- Dispatch to the command handlers
- Persist the cache after commands that change it

Command output is JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from dropcache import __version__
from dropcache.cache import MonsterCache
from dropcache.config import Settings
from dropcache.errors import DropCacheError, ErrorCode
from dropcache.ingest import build_cache, fetch_monster, refresh_stale
from dropcache.lookup import search_monsters
from dropcache.persistence import (
    FileSnapshotStore,
    SqliteSnapshotStore,
    persist_cache,
    restore_cache,
)
from dropcache.state import AppState
from dropcache.wiki import WikiClient, build_http_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from dropcache.ingest import IngestReport
    from dropcache.protocols import WikiClientProtocol

log = structlog.get_logger()

STATUS_SAMPLE_SIZE = 10


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries command output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@asynccontextmanager
async def open_state(settings: Settings, *, online: bool) -> AsyncGenerator[AppState, None]:
    """Create and tear down everything a command needs."""
    cache = MonsterCache(
        ttl=timedelta(hours=settings.cache.ttl_hours),
        max_entries=settings.cache.max_entries,
    )

    db: aiosqlite.Connection | None = None
    if settings.cache.backend == "sqlite":
        db_path = Path(settings.cache.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
        sqlite_store = SqliteSnapshotStore(db)
        await sqlite_store.init_db()
        snapshot_store: FileSnapshotStore | SqliteSnapshotStore = sqlite_store
    else:
        snapshot_store = FileSnapshotStore(Path(settings.cache.snapshot_path).expanduser())

    state = AppState(settings=settings, cache=cache, snapshot_store=snapshot_store)
    restored = await restore_cache(cache, snapshot_store)
    log.info(
        "cache_restored" if restored else "cache_started_empty",
        backend=settings.cache.backend,
        total_entries=len(cache),
    )

    if online:
        state.http_client = build_http_client(settings.wiki)
        state.wiki = WikiClient(state.http_client, settings.wiki)

    try:
        yield state
    finally:
        if state.http_client is not None:
            await state.http_client.aclose()
        if db is not None:
            await db.close()


def _require_wiki(state: AppState) -> WikiClientProtocol:
    if state.wiki is None:
        raise DropCacheError(
            code=ErrorCode.INVALID_INPUT,
            message="This command needs the wiki but was opened offline",
            suggestion="Run it with network access enabled.",
        )
    return state.wiki


def _clamp_limit(state: AppState, limit: int | None) -> int:
    if limit is None:
        return state.settings.search.default_limit
    return min(limit, state.settings.search.max_limit)


def _report_dict(report: IngestReport) -> dict:
    return {
        "processed": report.processed,
        "fetched": report.fetched,
        "skipped": report.skipped,
        "failures": [{"title": f.title, "error": f.error} for f in report.failures],
    }


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def cmd_build(state: AppState, args: argparse.Namespace) -> dict:
    report = await build_cache(
        _require_wiki(state),
        state.cache,
        state.settings.wiki,
        max_titles=args.limit,
    )
    await persist_cache(state.cache, state.snapshot_store)
    return {"report": _report_dict(report), "totalEntries": len(state.cache)}


async def cmd_search(state: AppState, args: argparse.Namespace) -> dict:
    limit = _clamp_limit(state, args.limit)
    if args.live:
        result = await search_monsters(
            args.query,
            limit,
            cache=state.cache,
            client=_require_wiki(state),
            base_url=state.settings.wiki.base_url,
            category=state.settings.wiki.category,
        )
        if result.source == "live" and result.results:
            await persist_cache(state.cache, state.snapshot_store)
        return {
            "searchTerm": result.search_term,
            "source": result.source,
            "results": [m.model_dump(mode="json", by_alias=True) for m in result.results],
        }

    cached = state.cache.search(args.query, limit)
    return {
        "searchTerm": args.query,
        "source": "cache",
        **cached.model_dump(mode="json", by_alias=True),
    }


async def cmd_show(state: AppState, args: argparse.Namespace) -> dict:
    monster = state.cache.get(args.title)
    source = "cache"
    if monster is None:
        monster = await fetch_monster(
            _require_wiki(state), args.title, base_url=state.settings.wiki.base_url
        )
        source = "live"
        if monster is not None and state.cache.put(monster):
            await persist_cache(state.cache, state.snapshot_store)

    if monster is None:
        return {"title": args.title, "found": False}
    return {
        "found": True,
        "source": source,
        "monster": monster.model_dump(mode="json", by_alias=True),
    }


async def cmd_status(state: AppState, args: argparse.Namespace) -> dict:
    titles = state.cache.titles()
    return {
        "version": __version__,
        "health": state.cache.health().model_dump(mode="json", by_alias=True),
        "stats": state.cache.stats().model_dump(mode="json", by_alias=True),
        "samples": {
            "monsterTitles": titles[:STATUS_SAMPLE_SIZE],
            "totalAvailable": len(titles),
        },
    }


async def cmd_refresh(state: AppState, args: argparse.Namespace) -> dict:
    report = await refresh_stale(
        _require_wiki(state),
        state.cache,
        state.settings.wiki,
        max_age=timedelta(hours=args.max_age_hours),
    )
    if report.processed:
        await persist_cache(state.cache, state.snapshot_store)
    return {"report": _report_dict(report), "totalEntries": len(state.cache)}


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dropcache",
        description="Look up monster drop tables from a cached copy of the OSRS wiki.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Crawl the monster category and cache every page")
    build.add_argument("--limit", type=int, default=None, help="Stop after this many titles")
    build.set_defaults(handler=cmd_build, online=True)

    search = commands.add_parser("search", help="Search cached monsters by name")
    search.add_argument("query", help="Monster name or part of one")
    search.add_argument("--limit", type=int, default=None, help="Maximum number of results")
    search.add_argument(
        "--live", action="store_true", help="Search the wiki when the cache has no match"
    )
    search.set_defaults(handler=cmd_search)

    show = commands.add_parser("show", help="Print one monster's drop table")
    show.add_argument("title", help="Exact wiki page title")
    show.set_defaults(handler=cmd_show, online=True)

    status = commands.add_parser("status", help="Print cache stats and health")
    status.set_defaults(handler=cmd_status, online=False)

    refresh = commands.add_parser("refresh", help="Re-fetch cached monsters older than max age")
    refresh.add_argument("--max-age-hours", type=float, default=24.0)
    refresh.set_defaults(handler=cmd_refresh, online=True)

    return parser


async def _run(settings: Settings, args: argparse.Namespace) -> dict:
    online = getattr(args, "online", False) or getattr(args, "live", False)
    async with open_state(settings, online=online) as state:
        return await args.handler(state, args)


def run(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings if settings is not None else Settings()
    _setup_logging(settings)

    try:
        output = asyncio.run(_run(settings, args))
    except DropCacheError as exc:
        log.warning("command_failed", command=args.command, code=exc.code, message=exc.message)
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
