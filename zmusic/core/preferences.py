"""
Persistent preference store.

Key-value storage that survives process restarts. The player only keeps two
things here: the liked-song ids and the recent search history. Values are
JSON-serializable Python objects.

Access pattern:
- everything is read once at startup (hydration)
- writes are explicit and fire-and-forget from the caller's point of view;
  the store itself is plain async so callers decide whether to await

Implementations:
- MemoryPreferenceStore: dict-backed, for tests and ephemeral sessions
- SqlitePreferenceStore: a single `preferences` table via aiosqlite
"""

from __future__ import annotations

import abc
import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

LIKED_SONGS_KEY = "likedSongs"
SEARCH_HISTORY_KEY = "musicSearchHistory"


class PreferenceStore(abc.ABC):
    """Interface for persisted user preferences."""

    @abc.abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent (or unreadable)."""

    @abc.abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""

    async def close(self) -> None:
        """Release resources. Default: nothing to do."""


class MemoryPreferenceStore(PreferenceStore):
    """In-memory store; values are copied through JSON like the real store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._values[key] = json.dumps(value)

    async def get(self, key: str) -> Any | None:
        raw = self._values.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = json.dumps(value)


class SqlitePreferenceStore(PreferenceStore):
    """
    Preference store backed by SQLite.

    Usage:
        prefs = SqlitePreferenceStore("zmusic-preferences.sqlite3")
        await prefs.open()
        liked = await prefs.get(LIKED_SONGS_KEY)
        await prefs.set(LIKED_SONGS_KEY, [1, 2, 3])
        await prefs.close()
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS preferences (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        await self._conn.commit()
        logger.debug("Opened preference store at %s", self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SqlitePreferenceStore is not open. Call await store.open() first.")
        return self._conn

    async def get(self, key: str) -> Any | None:
        conn = self._require_conn()
        async with conn.execute("SELECT value FROM preferences WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt preference %r", key)
            return None

    async def set(self, key: str, value: Any) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT INTO preferences (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, json.dumps(value)),
        )
        await conn.commit()


def parse_liked_ids(value: Any) -> frozenset[int]:
    """Turn a persisted liked-songs value into a set of ids (bad entries dropped)."""
    if value is None:
        return frozenset()
    if not isinstance(value, list):
        logger.warning("Ignoring malformed liked songs value: %r", value)
        return frozenset()
    ids: set[int] = set()
    for item in value:
        if isinstance(item, bool):
            continue
        if isinstance(item, int):
            ids.add(item)
        elif isinstance(item, str) and item.isdigit():
            ids.add(int(item))
    return frozenset(ids)
