"""Unit tests for dropcache.persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from dropcache.cache import MonsterCache
from dropcache.persistence import (
    FileSnapshotStore,
    SqliteSnapshotStore,
    persist_cache,
    restore_cache,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from conftest import FakeClock


@pytest.fixture()
async def sqlite_store() -> AsyncGenerator[SqliteSnapshotStore, None]:
    db = await aiosqlite.connect(":memory:")
    store = SqliteSnapshotStore(db)
    await store.init_db()
    yield store
    await db.close()


# ---------------------------------------------------------------------------
# FileSnapshotStore
# ---------------------------------------------------------------------------


class TestFileSnapshotStore:
    async def test_missing_file_loads_none(self, tmp_path: Path) -> None:
        store = FileSnapshotStore(tmp_path / "missing.json")
        assert await store.load() is None

    async def test_save_then_load(self, tmp_path: Path) -> None:
        store = FileSnapshotStore(tmp_path / "nested" / "cache.json")
        await store.save(b'{"version": "1.0"}')
        assert await store.load() == b'{"version": "1.0"}'

    async def test_save_leaves_no_temp_file(self, tmp_path: Path) -> None:
        store = FileSnapshotStore(tmp_path / "cache.json")
        await store.save(b"{}")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["cache.json"]

    async def test_save_replaces_previous(self, tmp_path: Path) -> None:
        store = FileSnapshotStore(tmp_path / "cache.json")
        await store.save(b"first")
        await store.save(b"second")
        assert await store.load() == b"second"

    async def test_write_failure_does_not_raise(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = FileSnapshotStore(blocker / "cache.json")
        await store.save(b"{}")
        assert await store.load() is None


# ---------------------------------------------------------------------------
# SqliteSnapshotStore
# ---------------------------------------------------------------------------


class TestSqliteSnapshotStore:
    async def test_empty_loads_none(self, sqlite_store: SqliteSnapshotStore) -> None:
        assert await sqlite_store.load() is None

    async def test_save_then_load(self, sqlite_store: SqliteSnapshotStore) -> None:
        await sqlite_store.save(b"payload-1")
        await sqlite_store.save(b"payload-2")
        assert await sqlite_store.load() == b"payload-2"

    async def test_named_snapshots_are_separate(self, sqlite_store: SqliteSnapshotStore) -> None:
        other = SqliteSnapshotStore(sqlite_store._db, name="other")
        await sqlite_store.save(b"main")
        await other.save(b"other")
        assert await sqlite_store.load() == b"main"
        assert await other.load() == b"other"

    async def test_read_failure_returns_none(self, sqlite_store: SqliteSnapshotStore) -> None:
        """Simulate a database read error: should return None, not raise."""
        original_execute = sqlite_store._db.execute

        async def failing_execute(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        sqlite_store._db.execute = failing_execute  # type: ignore[assignment]
        assert await sqlite_store.load() is None
        sqlite_store._db.execute = original_execute  # type: ignore[assignment]

    async def test_write_failure_does_not_raise(self, sqlite_store: SqliteSnapshotStore) -> None:
        original_execute = sqlite_store._db.execute

        async def failing_execute(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        sqlite_store._db.execute = failing_execute  # type: ignore[assignment]
        await sqlite_store.save(b"payload")
        sqlite_store._db.execute = original_execute  # type: ignore[assignment]
        assert await sqlite_store.load() is None


# ---------------------------------------------------------------------------
# restore_cache / persist_cache
# ---------------------------------------------------------------------------


class TestRestoreAndPersist:
    async def test_persist_then_restore(
        self,
        sqlite_store: SqliteSnapshotStore,
        cache: MonsterCache,
        sample_monsters,
        clock: FakeClock,
    ) -> None:
        cache.put_many(sample_monsters)
        await persist_cache(cache, sqlite_store)

        restored = MonsterCache(clock=clock)
        assert await restore_cache(restored, sqlite_store) is True
        assert restored.titles() == cache.titles()

    async def test_restore_without_snapshot(
        self, sqlite_store: SqliteSnapshotStore, cache: MonsterCache
    ) -> None:
        assert await restore_cache(cache, sqlite_store) is False

    async def test_corrupt_snapshot_starts_empty(
        self, tmp_path: Path, cache: MonsterCache
    ) -> None:
        path = tmp_path / "cache.json"
        path.write_text("{ definitely not json")
        assert await restore_cache(cache, FileSnapshotStore(path)) is False
        assert len(cache) == 0

    async def test_mismatched_version_starts_empty(
        self, tmp_path: Path, cache: MonsterCache
    ) -> None:
        path = tmp_path / "cache.json"
        path.write_text('{"version": "0.9", "monsters": []}')
        assert await restore_cache(cache, FileSnapshotStore(path)) is False
