import asyncio

import pytest

from conftest import FakeClock
from tools.web.cache import CacheStoreName, ContentCache, PeriodicSweeper, TTLStore

pytestmark = pytest.mark.unit


def test_entry_valid_strictly_before_ttl_boundary():
    clock = FakeClock(start=1000.0)
    store = TTLStore("search", ttl_seconds=10.0, clock=clock)
    store.set("k", "v")

    clock.now = 1009.999
    assert store.get("k") == "v"

    clock.now = 1010.0
    assert store.get("k") is None


def test_stale_entry_is_dropped_on_read_before_any_sweep():
    clock = FakeClock()
    store = TTLStore("listing", ttl_seconds=5.0, clock=clock)
    store.set("k", "v")
    clock.advance(6)

    assert store.get("k") is None
    assert len(store) == 0


def test_read_ttl_override_does_not_evict_entry():
    clock = FakeClock()
    store = TTLStore("pipeline", ttl_seconds=100.0, clock=clock)
    store.set("k", "v")
    clock.advance(20)

    assert store.get("k", ttl_seconds=10.0) is None
    assert store.get("k") == "v"


def test_set_overwrites_and_restamps():
    clock = FakeClock()
    store = TTLStore("search", ttl_seconds=10.0, clock=clock)
    store.set("k", "old")
    clock.advance(8)
    store.set("k", "new")
    clock.advance(8)

    assert store.get("k") == "new"


def test_sweep_removes_only_expired_entries():
    clock = FakeClock()
    store = TTLStore("search", ttl_seconds=10.0, clock=clock)
    store.set("old", 1)
    clock.advance(6)
    store.set("fresh", 2)
    clock.advance(5)

    assert store.sweep() == 1
    assert store.get("fresh") == 2
    assert len(store) == 1


def test_delete_prefix():
    store = TTLStore("listing", ttl_seconds=10.0)
    store.set("listing:c1:aaaa", 1)
    store.set("listing:c1:bbbb", 2)
    store.set("listing:c2:aaaa", 3)

    assert store.delete_prefix("listing:c1:") == 2
    assert store.get("listing:c2:aaaa") == 3


def test_invalid_ttl_rejected():
    with pytest.raises(ValueError):
        TTLStore("search", ttl_seconds=0)


def test_content_cache_stores_are_independent():
    clock = FakeClock()
    cache = ContentCache(search_ttl_s=100, listing_ttl_s=10, pipeline_ttl_s=50, clock=clock)
    cache.set(CacheStoreName.SEARCH, "k", "search")
    cache.set(CacheStoreName.LISTING, "k", "listing")
    cache.set(CacheStoreName.PIPELINE, "k", "pipeline")

    clock.advance(20)
    assert cache.get(CacheStoreName.SEARCH, "k") == "search"
    assert cache.get(CacheStoreName.LISTING, "k") is None
    assert cache.get(CacheStoreName.PIPELINE, "k") == "pipeline"

    clock.advance(40)
    assert cache.sweep() == 1
    assert cache.sizes() == {"search": 1, "listing": 0, "pipeline": 0}


class _CountingTarget:
    def __init__(self):
        self.sweeps = 0

    def sweep(self) -> int:
        self.sweeps += 1
        return 0


class _BrokenTarget:
    def sweep(self) -> int:
        raise RuntimeError("boom")


def test_sweep_once_continues_past_failing_target():
    target = _CountingTarget()
    sweeper = PeriodicSweeper([_BrokenTarget(), target], interval_s=60)

    sweeper.sweep_once()
    assert target.sweeps == 1


def test_periodic_sweeper_runs_and_stops():
    target = _CountingTarget()

    async def scenario():
        sweeper = PeriodicSweeper([target], interval_s=0.01)
        sweeper.start()
        sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.06)
        await sweeper.stop()
        return sweeper

    sweeper = asyncio.run(scenario())
    assert target.sweeps >= 1
    assert not sweeper.running
