"""Tests for last-event-id stores and key derivation."""

import os
import tempfile

import pytest

from streamsource.store.db import SqliteStore
from streamsource.store.keys import last_event_id_key
from streamsource.store.memory import MemoryStore


@pytest.fixture
async def db():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = SqliteStore(os.path.join(tmpdir, "nested", "ids.sqlite"))
        await store.connect()
        yield store
        await store.close()


class TestSqliteStore:
    @pytest.mark.asyncio
    async def test_connect_creates_table(self, db):
        cursor = await db.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
        tables = {row[0] for row in await cursor.fetchall()}
        assert "last_event_ids" in tables

    @pytest.mark.asyncio
    async def test_get_missing_key(self, db):
        assert await db.get("nothing.here") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, db):
        await db.set("k", "41")
        assert await db.get("k") == "41"

    @pytest.mark.asyncio
    async def test_set_overwrites(self, db):
        await db.set("k", "1")
        await db.set("k", "2")
        assert await db.get("k") == "2"
        assert len(await db.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_list_entries(self, db):
        await db.set("a", "1")
        await db.set("b", "2")
        rows = await db.list_entries()
        assert {(r.key, r.value) for r in rows} == {("a", "1"), ("b", "2")}

    @pytest.mark.asyncio
    async def test_delete(self, db):
        await db.set("k", "1")
        await db.delete("k")
        assert await db.get("k") is None

    @pytest.mark.asyncio
    async def test_survives_reopen(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "ids.sqlite")
            first = SqliteStore(path)
            await first.connect()
            await first.set("k", "99")
            await first.close()

            second = SqliteStore(path)
            await second.connect()
            assert await second.get("k") == "99"
            await second.close()

    @pytest.mark.asyncio
    async def test_in_memory_database(self):
        store = SqliteStore(":memory:")
        await store.connect()
        await store.set("k", "v")
        assert await store.get("k") == "v"
        await store.close()

    @pytest.mark.asyncio
    async def test_use_before_connect_raises(self):
        with pytest.raises(RuntimeError, match="not connected"):
            await SqliteStore("unused.sqlite").get("k")


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_set_and_get(self):
        store = MemoryStore()
        assert await store.get("k") is None
        await store.set("k", "1")
        assert await store.get("k") == "1"
        assert await store.get("other") is None

    @pytest.mark.asyncio
    async def test_initial_values_copied(self):
        initial = {"k": "1"}
        store = MemoryStore(initial)
        await store.set("k", "2")
        assert initial == {"k": "1"}


class TestLastEventIdKey:
    def test_full_url(self):
        key = last_event_id_key("https://example.com:8443/api/stream?token=abc")
        assert key == "com.inaka.eventSource.lastEventId.https.example.com.8443./api/stream"

    def test_missing_port_is_empty_segment(self):
        key = last_event_id_key("http://example.com/events")
        assert key == "com.inaka.eventSource.lastEventId.http.example.com../events"

    def test_no_path(self):
        key = last_event_id_key("http://example.com")
        assert key == "com.inaka.eventSource.lastEventId.http.example.com.."

    def test_custom_namespace(self):
        assert last_event_id_key("http://h:1/p", namespace="app") == "app.http.h.1./p"

    def test_distinct_paths_distinct_keys(self):
        assert last_event_id_key("http://h/a") != last_event_id_key("http://h/b")

    def test_path_is_percent_decoded(self):
        key = last_event_id_key("http://h/feeds/caf%C3%A9%20news")
        assert key == "com.inaka.eventSource.lastEventId.http.h../feeds/café news"
