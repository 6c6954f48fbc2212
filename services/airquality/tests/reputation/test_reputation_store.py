"""
Tests for ReputationStore against the dict-backed FakePool.

Covers the block threshold, reset-on-unflag, ordering, and the split
failure policy (writes raise PersistenceError, reads fail safe).
"""

from __future__ import annotations

import pytest

from services.airquality.errors import PersistenceError
from services.airquality.reputation import BLOCK_THRESHOLD, ReputationStore


@pytest.fixture
def store(fake_pool) -> ReputationStore:
    return ReputationStore(fake_pool)


class TestFlag:
    @pytest.mark.asyncio
    async def test_first_flag_starts_at_one(self, store):
        result = await store.flag("Warsaw", "PL")
        assert result.invalid_count == 1
        assert result.is_blocked is False

    @pytest.mark.asyncio
    async def test_two_flags_not_blocked(self, store):
        await store.flag("Warsaw", "PL")
        result = await store.flag("Warsaw", "PL")
        assert result.invalid_count == 2
        assert result.is_blocked is False

    @pytest.mark.asyncio
    async def test_three_flags_blocked(self, store):
        for _ in range(BLOCK_THRESHOLD):
            result = await store.flag("Warsaw", "PL")
        assert result.invalid_count == 3
        assert result.is_blocked is True
        assert await store.is_blocked("Warsaw", "PL") is True

    @pytest.mark.asyncio
    async def test_key_is_case_and_whitespace_insensitive(self, store):
        await store.flag("Warsaw", "PL")
        await store.flag(" warsaw ", "pl")
        result = await store.flag("WARSAW", "PL")
        assert result.is_blocked is True

    @pytest.mark.asyncio
    async def test_same_city_different_country_is_separate(self, store):
        await store.flag("Valencia", "ES")
        result = await store.flag("Valencia", "FR")
        assert result.invalid_count == 1

    @pytest.mark.asyncio
    async def test_custom_threshold(self, fake_pool):
        store = ReputationStore(fake_pool, threshold=1)
        assert (await store.flag("Warsaw", "PL")).is_blocked is True

    @pytest.mark.asyncio
    async def test_write_failure_raises(self, store, fake_pool):
        fake_pool.fail = True
        with pytest.raises(PersistenceError):
            await store.flag("Warsaw", "PL")


class TestUnflag:
    @pytest.mark.asyncio
    async def test_unflag_then_flag_resets_count(self, store):
        for _ in range(3):
            await store.flag("Warsaw", "PL")

        removed = await store.unflag("Warsaw", "PL")
        result = await store.flag("Warsaw", "PL")

        assert removed.removed is True
        assert result.invalid_count == 1
        assert result.is_blocked is False

    @pytest.mark.asyncio
    async def test_unflag_unknown_city(self, store):
        assert (await store.unflag("Nowhere", "PL")).removed is False

    @pytest.mark.asyncio
    async def test_unflag_failure_raises(self, store, fake_pool):
        fake_pool.fail = True
        with pytest.raises(PersistenceError):
            await store.unflag("Warsaw", "PL")


class TestReads:
    @pytest.mark.asyncio
    async def test_list_blocked_only_returns_entries_at_threshold(self, store):
        for _ in range(3):
            await store.flag("Warsaw", "PL")
        await store.flag("Krakow", "PL")

        blocked = await store.list_blocked()

        assert [e.city_name for e in blocked] == ["Warsaw"]
        assert blocked[0].is_blocked is True

    @pytest.mark.asyncio
    async def test_list_flagged_most_recent_first(self, store):
        for _ in range(3):
            await store.flag("Warsaw", "PL")
        for _ in range(3):
            await store.flag("Berlin", "DE")

        entries = await store.list_flagged()

        assert [e.city_name for e in entries] == ["Berlin", "Warsaw"]

    @pytest.mark.asyncio
    async def test_list_flagged_country_filter_and_all(self, store):
        await store.flag("Warsaw", "PL")
        await store.flag("Berlin", "DE")

        entries = await store.list_flagged("pl", blocked_only=False)

        assert [(e.city_name, e.invalid_count) for e in entries] == [("Warsaw", 1)]

    @pytest.mark.asyncio
    async def test_blocked_names_are_lowercase(self, store):
        for _ in range(3):
            await store.flag("Warsaw", "PL")
        assert await store.blocked_names("PL") == {"warsaw"}

    @pytest.mark.asyncio
    async def test_reads_fail_safe(self, store, fake_pool):
        fake_pool.fail = True
        assert await store.is_blocked("Warsaw", "PL") is False
        assert await store.list_blocked() == []
        assert await store.blocked_names("PL") == set()
        assert await store.stats() == {"flagged_count": 0, "blocked_count": 0}

    @pytest.mark.asyncio
    async def test_stats(self, store):
        for _ in range(3):
            await store.flag("Warsaw", "PL")
        await store.flag("Lodz", "PL")
        assert await store.stats() == {"flagged_count": 2, "blocked_count": 1}


class TestNoDatabase:
    @pytest.mark.asyncio
    async def test_writes_raise_and_reads_fail_safe_without_pool(self):
        store = ReputationStore(None)
        with pytest.raises(PersistenceError):
            await store.flag("Warsaw", "PL")
        assert await store.is_blocked("Warsaw", "PL") is False
        assert await store.list_blocked() == []

    @pytest.mark.asyncio
    async def test_ensure_schema_creates_table(self, store, fake_pool):
        from services.airquality.reputation.store import CREATE_TABLE_SQL

        await store.ensure_schema()
        assert fake_pool.calls == [CREATE_TABLE_SQL]
