"""MediaWiki API client for the Old School RuneScape wiki.

All network I/O for ingestion and live lookups goes through a single
WikiClient. The client receives an httpx.AsyncClient via constructor
injection; whoever builds it owns its lifecycle.

Requests are serialised through a throttle that keeps at least
``request_delay_ms`` between request starts. HTTP 429 waits
``rate_limit_wait_seconds`` and tries again; transport errors and other
non-2xx responses back off linearly. After ``max_retries`` attempts the call
raises ``DropCacheError(WIKI_FETCH_FAILED)``.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from dropcache.errors import DropCacheError, ErrorCode
from dropcache.models.monster import WikiPage

if TYPE_CHECKING:
    from dropcache.config import WikiSettings

log = structlog.get_logger()

MISSING_PAGE_ID = "-1"
CATEGORY_PAGE_SIZE = 500
IMAGE_BATCH_SIZE = 50  # MediaWiki's per-request title limit


def build_http_client(settings: WikiSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class WikiClient:
    """Rate-limited, retrying client for the handful of API calls we need."""

    def __init__(self, client: httpx.AsyncClient, settings: WikiSettings) -> None:
        self._client = client
        self._settings = settings
        self._throttle = asyncio.Lock()
        self._last_request_at: float | None = None

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def fetch_category_members(
        self, category: str, *, max_pages: int | None = None
    ) -> list[str]:
        """List page titles in ``category``, following ``cmcontinue``.

        A request that still fails after retries ends the crawl early; the
        titles collected so far are returned.
        """
        titles: dict[str, None] = {}
        cmcontinue: str | None = None
        pages = 0

        while True:
            params = {
                "action": "query",
                "list": "categorymembers",
                "cmtitle": category,
                "cmlimit": str(CATEGORY_PAGE_SIZE),
                "cmtype": "page",
            }
            if cmcontinue:
                params["cmcontinue"] = cmcontinue

            try:
                data = await self._get_json(params)
            except DropCacheError as exc:
                log.warning(
                    "wiki_category_crawl_interrupted",
                    category=category,
                    collected=len(titles),
                    error=exc.message,
                )
                break

            for member in data.get("query", {}).get("categorymembers", []):
                title = member.get("title")
                if title:
                    titles[title] = None

            pages += 1
            cmcontinue = data.get("continue", {}).get("cmcontinue")
            log.info("wiki_category_page", category=category, page=pages, found=len(titles))
            if not cmcontinue or (max_pages is not None and pages >= max_pages):
                break

        return list(titles)

    async def fetch_page(self, title: str) -> WikiPage | None:
        """Fetch wikitext, intro extract and lead image. ``None`` if missing."""
        data = await self._get_json(
            {
                "action": "query",
                "titles": title,
                "prop": "revisions|extracts|pageimages",
                "rvprop": "content",
                "exintro": "1",
                "explaintext": "1",
                "piprop": "original",
            }
        )

        pages = data.get("query", {}).get("pages")
        if not pages:
            return None

        page_id, page = next(iter(pages.items()))
        if page_id == MISSING_PAGE_ID or not page or "missing" in page:
            log.debug("wiki_page_missing", title=title)
            return None

        revisions = page.get("revisions") or [{}]
        return WikiPage(
            title=page.get("title", title),
            wikitext=revisions[0].get("*", ""),
            extract=page.get("extract") or None,
            image=(page.get("original") or {}).get("source") or None,
        )

    async def fetch_item_images(self, names: list[str]) -> dict[str, str | None]:
        """Map item names to their image URLs, batched per request."""
        images: dict[str, str | None] = {}
        unique = list(dict.fromkeys(name for name in names if name.strip()))

        for start in range(0, len(unique), IMAGE_BATCH_SIZE):
            batch = unique[start : start + IMAGE_BATCH_SIZE]
            data = await self._get_json(
                {
                    "action": "query",
                    "titles": "|".join(batch),
                    "prop": "pageimages",
                    "piprop": "original",
                }
            )
            query = data.get("query", {})
            for page in query.get("pages", {}).values():
                if page.get("title"):
                    images[page["title"]] = (page.get("original") or {}).get("source")
            # The API answers under normalised titles ("goblin mail" -> "Goblin mail")
            for rename in query.get("normalized", []):
                if rename.get("to") in images:
                    images[rename["from"]] = images[rename["to"]]

        return images

    async def opensearch(self, query: str, limit: int) -> list[str]:
        if not query.strip():
            return []
        data = await self._get_json(
            {"action": "opensearch", "search": query, "limit": str(limit)}
        )
        if not isinstance(data, list) or len(data) < 2 or not isinstance(data[1], list):
            return []
        return [title for title in data[1] if isinstance(title, str)]

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _wait_turn(self) -> None:
        delay = self._settings.request_delay_ms / 1000
        async with self._throttle:
            if self._last_request_at is not None:
                remaining = delay - (time.monotonic() - self._last_request_at)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_request_at = time.monotonic()

    async def _get_json(self, params: dict[str, str]) -> Any:
        query = {**params, "format": "json"}
        max_retries = self._settings.max_retries

        for attempt in range(1, max_retries + 1):
            await self._wait_turn()
            try:
                response = await self._client.get(self._settings.api_url, params=query)
                if response.status_code == 429:
                    log.warning(
                        "wiki_rate_limited",
                        attempt=attempt,
                        wait_seconds=self._settings.rate_limit_wait_seconds,
                    )
                    await asyncio.sleep(self._settings.rate_limit_wait_seconds)
                    continue
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as exc:
                log.warning(
                    "wiki_request_failed",
                    action=params.get("action"),
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(exc),
                )
                if attempt == max_retries:
                    raise DropCacheError(
                        code=ErrorCode.WIKI_FETCH_FAILED,
                        message=f"Wiki request failed after {max_retries} attempts: {exc}",
                        suggestion="The wiki may be temporarily unavailable. Try again later.",
                        recoverable=True,
                    ) from exc
                await asyncio.sleep(self._settings.retry_backoff_seconds * attempt)

        raise DropCacheError(
            code=ErrorCode.WIKI_FETCH_FAILED,
            message=f"Wiki kept rate limiting after {max_retries} attempts",
            suggestion="Increase request_delay_ms or retry later.",
            recoverable=True,
        )
