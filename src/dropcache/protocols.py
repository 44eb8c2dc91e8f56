"""Protocol interfaces for swappable components.

The cache, the ingestion pipeline and the CLI reference these protocols, not
the concrete implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other snapshot backends to be swapped in without touching the cache
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from dropcache.models.monster import WikiPage


class SnapshotStoreProtocol(Protocol):
    """Byte store holding one serialised cache snapshot."""

    async def load(self) -> bytes | None: ...

    async def save(self, data: bytes) -> None: ...


class WikiClientProtocol(Protocol):
    """Interface for the wiki API client used by ingestion and lookup."""

    async def fetch_category_members(
        self, category: str, *, max_pages: int | None = None
    ) -> list[str]: ...

    async def fetch_page(self, title: str) -> WikiPage | None: ...

    async def fetch_item_images(self, names: list[str]) -> dict[str, str | None]: ...

    async def opensearch(self, query: str, limit: int) -> list[str]: ...
