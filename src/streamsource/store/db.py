"""SQLite-backed last-event-id store via aiosqlite."""

from __future__ import annotations

import os
import time

import aiosqlite
import structlog

from .models import SCHEMA_SQL, LastEventIdRow

log = structlog.get_logger()


class SqliteStore:
    """Persists last event ids across process restarts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection and initialize schema."""
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        log.info("store_connected", path=self._db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Store not connected")
        return self._conn

    async def get(self, key: str) -> str | None:
        cursor = await self.conn.execute(
            "SELECT value FROM last_event_ids WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        """Upsert and commit before returning, so a crash never loses an acknowledged id."""
        await self.conn.execute(
            """
            INSERT INTO last_event_ids (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, time.time()),
        )
        await self.conn.commit()

    async def list_entries(self) -> list[LastEventIdRow]:
        """All stored ids, most recently updated first."""
        cursor = await self.conn.execute(
            "SELECT key, value, updated_at FROM last_event_ids ORDER BY updated_at DESC"
        )
        rows = await cursor.fetchall()
        return [LastEventIdRow(*r) for r in rows]

    async def delete(self, key: str) -> None:
        """Forget a subscription's id so its next connect starts fresh."""
        await self.conn.execute("DELETE FROM last_event_ids WHERE key = ?", (key,))
        await self.conn.commit()
