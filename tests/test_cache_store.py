from datetime import datetime, timedelta, timezone

import pytest

from geosaude.core.cache_store import InMemoryCacheStore, SqlCacheStore
from geosaude.schemas.geo import Address, CacheEntry, GeocodeSource
from geosaude.utils.helpers import address_hash
from conftest import CEILANDIA, SAMAMBAIA, run

HOME = Address(freeform_text="QNM 18 Conjunto A Casa 10", postal_code="72210-180")
KEY = address_hash(HOME)


def entry(coords=CEILANDIA, source=GeocodeSource.PRIMARY, age_days=0, key=KEY, error=None):
    return CacheEntry(
        address_hash=key,
        address=HOME,
        coordinates=coords,
        source=source,
        error_message=error,
        created_at=datetime.now(timezone.utc) - timedelta(days=age_days),
    )


@pytest.fixture(params=["memory", "sql"])
def make_store(request, tmp_path):
    async def _make():
        if request.param == "memory":
            return InMemoryCacheStore()
        store = SqlCacheStore(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
        await store.create_tables()
        return store

    return _make


def test_get_missing_returns_none(make_store):
    async def go():
        store = await make_store()
        try:
            return await store.get("nope")
        finally:
            if isinstance(store, SqlCacheStore):
                await store.dispose()

    assert run(go()) is None


def test_last_write_wins(make_store):
    async def go():
        store = await make_store()
        try:
            await store.set(entry(coords=CEILANDIA))
            await store.set(entry(coords=SAMAMBAIA))
            return await store.get(KEY)
        finally:
            if isinstance(store, SqlCacheStore):
                await store.dispose()

    got = run(go())
    assert got.coordinates == SAMAMBAIA
    assert got.address == HOME
    assert got.source is GeocodeSource.PRIMARY


def test_negative_entry_round_trip(make_store):
    async def go():
        store = await make_store()
        try:
            await store.set(entry(coords=None, source=GeocodeSource.ERROR, error="could not geocode address"))
            return await store.get(KEY)
        finally:
            if isinstance(store, SqlCacheStore):
                await store.dispose()

    got = run(go())
    assert got.coordinates is None
    assert got.source is GeocodeSource.ERROR
    assert got.error_message == "could not geocode address"
    assert got.to_result().source is GeocodeSource.ERROR


def test_delete_older_than(make_store):
    async def go():
        store = await make_store()
        try:
            await store.set(entry(key="fresh", age_days=1))
            await store.set(entry(key="old", age_days=31))
            await store.set(entry(key="ancient", age_days=400))
            cutoff = datetime.now(timezone.utc) - timedelta(days=30)
            removed = await store.delete_older_than(cutoff)
            return removed, await store.get("fresh"), await store.get("old")
        finally:
            if isinstance(store, SqlCacheStore):
                await store.dispose()

    removed, fresh, old = run(go())
    assert removed == 2
    assert fresh is not None
    assert old is None


def test_cached_entry_reads_back_as_cache_source():
    result = entry().to_result()
    assert result.source is GeocodeSource.CACHE
    assert result.coordinates == CEILANDIA
