"""Snapshot persistence: backing stores and cache restore/persist helpers.

Both stores implement SnapshotStoreProtocol. Infrastructure errors never
cross the store boundary: read failures return ``None`` (treated as "no
snapshot"), write failures are logged and ignored. A cache that cannot be
persisted keeps serving from memory.
"""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from dropcache.errors import DropCacheError

if TYPE_CHECKING:
    from pathlib import Path

    from dropcache.cache import MonsterCache
    from dropcache.protocols import SnapshotStoreProtocol

log = structlog.get_logger()

_CREATE_SNAPSHOT_TABLE = """
CREATE TABLE IF NOT EXISTS snapshots (
    name     TEXT PRIMARY KEY,
    payload  BLOB NOT NULL,
    saved_at TEXT NOT NULL
)
"""

DEFAULT_SNAPSHOT_NAME = "monster-cache"


class FileSnapshotStore:
    """Snapshot kept in a single JSON file, replaced atomically on save."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def load(self) -> bytes | None:
        if not self.path.is_file():
            log.debug("snapshot_file_missing", path=str(self.path))
            return None
        try:
            return self.path.read_bytes()
        except OSError:
            log.warning("snapshot_read_error", path=str(self.path), exc_info=True)
            return None

    async def save(self, data: bytes) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            _write_bytes_fsync(tmp_path, data)
            os.replace(tmp_path, self.path)
            _fsync_directory(self.path.parent)
            log.info("snapshot_saved", path=str(self.path), size_bytes=len(data))
        except OSError:
            log.warning("snapshot_write_error", path=str(self.path), exc_info=True)
        finally:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)


class SqliteSnapshotStore:
    """Snapshot kept as a named row in a SQLite database."""

    def __init__(self, db: aiosqlite.Connection, name: str = DEFAULT_SNAPSHOT_NAME) -> None:
        self._db = db
        self.name = name

    async def init_db(self) -> None:
        """Create the snapshot table and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_SNAPSHOT_TABLE)
        await self._db.commit()

    async def load(self) -> bytes | None:
        try:
            cursor = await self._db.execute(
                "SELECT payload FROM snapshots WHERE name = ?",
                (self.name,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("snapshot_read_error", name=self.name, exc_info=True)
            return None

        if row is None:
            return None
        payload = row[0]
        return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)

    async def save(self, data: bytes) -> None:
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO snapshots (name, payload, saved_at) VALUES (?, ?, ?)",
                (self.name, data, datetime.now(UTC).isoformat()),
            )
            await self._db.commit()
            log.info("snapshot_saved", name=self.name, size_bytes=len(data))
        except aiosqlite.Error:
            log.warning("snapshot_write_error", name=self.name, exc_info=True)


async def restore_cache(cache: MonsterCache, store: SnapshotStoreProtocol) -> bool:
    """Load the stored snapshot into ``cache``.

    Never fatal: a missing, corrupt, or mismatched snapshot is logged and the
    cache starts empty. Returns True when a snapshot was applied.
    """
    data = await store.load()
    if data is None:
        return False

    try:
        applied = cache.import_snapshot(data)
    except DropCacheError as exc:
        log.warning("snapshot_restore_skipped", reason=exc.code, message=exc.message)
        return False

    if not applied:
        log.warning("snapshot_restore_skipped", reason="rejected")
    return applied


async def persist_cache(cache: MonsterCache, store: SnapshotStoreProtocol) -> None:
    await store.save(cache.export_snapshot().encode("utf-8"))


def _write_bytes_fsync(path: Path, data: bytes) -> None:
    with path.open("wb") as file_obj:
        file_obj.write(data)
        file_obj.flush()
        os.fsync(file_obj.fileno())


def _fsync_directory(path: Path) -> None:
    if sys.platform == "win32":
        return  # Windows does not support fsync on directory handles
    directory_fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)
