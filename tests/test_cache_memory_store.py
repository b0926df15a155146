"""
Tests for the summary cache.

Run with: pytest tests/test_cache_memory_store.py -v
"""

import gc

import pytest

from dualmode.domain.context.memory.cache_memory_store import CacheMemoryStore
from dualmode.domain.models.conversation import CacheEntry


def make_entry(clock, fingerprint="fp-1", user_id="user-1", age_seconds=0) -> CacheEntry:
    created = clock()
    clock.advance(age_seconds)
    return CacheEntry(
        fingerprint=fingerprint,
        owner_user_id=user_id,
        summary="earlier discussion",
        summary_covers_up_to_index=5,
        cached_raw_message_count=20,
        created_at=created,
        updated_at=created
    )


class TestValidity:

    def test_entry_one_second_old_is_valid(self, cache_store, clock):
        assert cache_store.is_valid(make_entry(clock, age_seconds=1))

    def test_entry_older_than_ttl_is_invalid(self, cache_store, clock):
        assert not cache_store.is_valid(make_entry(clock, age_seconds=3601))

    def test_non_entry_is_invalid(self, cache_store):
        assert not cache_store.is_valid({"summary": "x"})
        assert not cache_store.is_valid(None)

    def test_zero_ttl_expires_immediately(self, clock):
        store = CacheMemoryStore(ttl_seconds=0, clock=clock)

        assert not store.is_valid(make_entry(clock, age_seconds=0))


class TestGet:

    @pytest.mark.asyncio
    async def test_round_trip(self, cache_store, clock):
        entry = make_entry(clock)
        await cache_store.put(entry)

        assert await cache_store.get("fp-1", "user-1") is entry

    @pytest.mark.asyncio
    async def test_other_user_never_sees_entry(self, cache_store, clock):
        await cache_store.put(make_entry(clock, user_id="user-1"))

        assert await cache_store.get("fp-1", "user-2") is None
        assert await cache_store.get("fp-1", "user-1") is not None

    @pytest.mark.asyncio
    async def test_same_fingerprint_kept_per_user(self, cache_store, clock):
        first = make_entry(clock, user_id="user-1")
        second = make_entry(clock, user_id="user-2")
        await cache_store.put(first)
        await cache_store.put(second)

        assert await cache_store.get("fp-1", "user-1") is first
        assert await cache_store.get("fp-1", "user-2") is second

    @pytest.mark.asyncio
    async def test_expired_entry_is_absent_and_removed(self, cache_store, clock):
        await cache_store.put(make_entry(clock))
        clock.advance(3601)

        assert await cache_store.get("fp-1", "user-1") is None
        assert ("fp-1", "user-1") not in cache_store.cache

    @pytest.mark.asyncio
    async def test_corrupted_entry_is_absent_and_removed(self, cache_store):
        cache_store.cache[("fp-1", "user-1")] = {"summary": 42}

        assert await cache_store.get("fp-1", "user-1") is None
        assert ("fp-1", "user-1") not in cache_store.cache

    @pytest.mark.asyncio
    async def test_entry_filed_under_wrong_owner_is_discarded(self, cache_store, clock):
        cache_store.cache[("fp-1", "user-2")] = make_entry(clock, user_id="user-1")

        assert await cache_store.get("fp-1", "user-2") is None


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_delete(self, cache_store, clock):
        await cache_store.put(make_entry(clock))

        assert await cache_store.delete("fp-1", "user-1") is True
        assert await cache_store.delete("fp-1", "user-1") is False

    @pytest.mark.asyncio
    async def test_clear_expired(self, cache_store, clock):
        await cache_store.put(make_entry(clock, fingerprint="old"))
        clock.advance(3000)
        await cache_store.put(make_entry(clock, fingerprint="new"))
        clock.advance(700)
        cache_store.cache[("broken", "user-1")] = "not an entry"

        assert await cache_store.clear_expired() == 2
        assert list(cache_store.cache.keys()) == [("new", "user-1")]

    @pytest.mark.asyncio
    async def test_stats(self, cache_store, clock):
        await cache_store.put(make_entry(clock, fingerprint="old"))
        clock.advance(3601)
        await cache_store.put(make_entry(clock, fingerprint="new"))

        stats = await cache_store.get_stats()

        assert stats == {"total_keys": 2, "active_keys": 1, "expired_keys": 1}


class TestKeyLocks:

    @pytest.mark.asyncio
    async def test_same_key_shares_a_lock(self, cache_store):
        lock = cache_store.key_lock("fp-1", "user-1")

        assert cache_store.key_lock("fp-1", "user-1") is lock
        assert cache_store.key_lock("fp-1", "user-2") is not lock

    @pytest.mark.asyncio
    async def test_unused_locks_are_released(self, cache_store, clock):
        await cache_store.put(make_entry(clock))
        async with cache_store.key_lock("fp-1", "user-1"):
            clock.advance(3601)
            assert await cache_store.get("fp-1", "user-1") is None
            assert len(cache_store._key_locks) == 1

        gc.collect()

        assert len(cache_store._key_locks) == 0
