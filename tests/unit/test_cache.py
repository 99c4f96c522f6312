"""Tests for the query cache and the sync client built on it."""

import asyncio

import pytest

from mindfulspace.cache import QueryCache, SyncClient
from mindfulspace.errors import StorageError, ValidationError
from mindfulspace.store import EntityStore


class TestQueryCache:
    @pytest.mark.asyncio
    async def test_fetch_is_memoized(self):
        cache = QueryCache()
        calls = []

        async def fetcher():
            calls.append(1)
            return ["a"]

        assert await cache.fetch(("Playlist",), fetcher) == ["a"]
        assert await cache.fetch(("Playlist",), fetcher) == ["a"]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self):
        cache = QueryCache()
        calls = []

        async def fetcher():
            calls.append(1)
            await asyncio.sleep(0.01)
            return 42

        results = await asyncio.gather(*(cache.fetch(("k",), fetcher) for _ in range(5)))
        assert results == [42] * 5
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_cached(self):
        cache = QueryCache()

        async def broken():
            raise StorageError("down")

        async def working():
            return "ok"

        with pytest.raises(StorageError):
            await cache.fetch(("k",), broken)
        assert ("k",) not in cache
        assert await cache.fetch(("k",), working) == "ok"

    @pytest.mark.asyncio
    async def test_invalidate_by_prefix(self):
        cache = QueryCache()

        async def value():
            return 1

        await cache.fetch(("Expert", "list", None), value)
        await cache.fetch(("Expert", "list", "-created_date"), value)
        await cache.fetch(("Playlist", "list", None), value)

        cache.invalidate("Expert")

        assert ("Expert", "list", None) not in cache
        assert ("Expert", "list", "-created_date") not in cache
        assert ("Playlist", "list", None) in cache

    @pytest.mark.asyncio
    async def test_invalidation_during_fetch_discards_stale_result(self):
        cache = QueryCache()
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            return "stale"

        task = asyncio.create_task(cache.fetch(("Expert", "list"), slow))
        await started.wait()
        cache.invalidate("Expert")
        release.set()

        assert await task == "stale"
        assert ("Expert", "list") not in cache


class TestSyncClient:
    @pytest.fixture
    def client(self, kv) -> SyncClient:
        return SyncClient(EntityStore(kv))

    @pytest.mark.asyncio
    async def test_reads_are_cached(self, client, kv):
        first = await client.list("Playlist")
        await kv.set("db_Playlist", '[{"id": "sneaky"}]')
        assert await client.list("Playlist") == first

    @pytest.mark.asyncio
    async def test_create_invalidates_collection_reads(self, client):
        assert await client.list("Playlist") == []
        created = await client.create("Playlist", {"title": "Calm"})
        assert [p.id for p in await client.list("Playlist")] == [created.id]

    @pytest.mark.asyncio
    async def test_update_invalidates_every_ordering(self, client):
        created = await client.create("Playlist", {"title": "Calm"})
        await client.list("Playlist")
        await client.list("Playlist", "-created_date")

        await client.update("Playlist", created.id, {"title": "Calmer"})

        assert (await client.list("Playlist"))[0].title == "Calmer"
        assert (await client.list("Playlist", "-created_date"))[0].title == "Calmer"

    @pytest.mark.asyncio
    async def test_writes_leave_other_collections_cached(self, client):
        await client.list("Expert")
        await client.create("Playlist", {"title": "Calm"})
        assert ("Expert", "list", None) in client.cache

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(self, client):
        await client.list("Consultation")
        with pytest.raises(ValidationError):
            await client.create("Consultation", {"status": "bogus"})
        assert ("Consultation", "list", None) in client.cache
