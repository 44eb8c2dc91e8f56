"""Application state container.

AppState is created once per CLI invocation by ``cli.open_state`` and passed
to every command handler. The wiki fields stay ``None`` for commands that
never touch the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from dropcache.cache import MonsterCache
    from dropcache.config import Settings
    from dropcache.protocols import SnapshotStoreProtocol, WikiClientProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every command handler."""

    settings: Settings
    cache: MonsterCache
    snapshot_store: SnapshotStoreProtocol

    http_client: httpx.AsyncClient | None = None
    wiki: WikiClientProtocol | None = None
