from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from erp_auth.cache.session_cache import CacheEntry, MemorySessionCache

from fakes import company_role, new_id, principal_of


def _entry(clock, ttl: int = 300) -> CacheEntry:
    principal = principal_of(company_role("employee", new_id()))
    return CacheEntry(principal=principal, cached_at=clock(), ttl_seconds=ttl)


@pytest.mark.asyncio
async def test_entry_lives_until_ttl_boundary(cache, clock) -> None:
    entry = _entry(clock, ttl=300)
    await cache.set("user:1", entry)

    clock.advance(299)
    assert (await cache.get("user:1")).principal == entry.principal

    clock.advance(1)
    assert await cache.get("user:1") is None
    # Expired entries are evicted on read.
    assert cache.size() == 0


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_entries(cache, clock) -> None:
    await cache.set("user:old", _entry(clock, ttl=10))
    clock.advance(5)
    await cache.set("user:new", _entry(clock, ttl=10))
    clock.advance(5)

    assert cache.sweep() == 1
    assert cache.size() == 1
    assert await cache.get("user:new") is not None


@pytest.mark.asyncio
async def test_delete_and_clear(cache, clock) -> None:
    await cache.set("user:1", _entry(clock))
    await cache.set("user:2", _entry(clock))

    await cache.delete("user:1")
    await cache.delete("user:missing")
    assert await cache.get("user:1") is None
    assert cache.size() == 1

    await cache.clear()
    assert cache.size() == 0


def test_concurrent_writers_and_sweeps(clock) -> None:
    cache = MemorySessionCache(clock=clock)

    def work(i: int) -> None:
        asyncio.run(cache.set(f"user:{i}", _entry(clock, ttl=1 if i % 2 else 300)))
        cache.sweep()
        asyncio.run(cache.get(f"user:{i}"))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(200)))

    clock.advance(1)
    cache.sweep()
    assert cache.size() == 100


@pytest.mark.asyncio
async def test_background_sweeper_start_stop(clock) -> None:
    cache = MemorySessionCache(sweep_interval=0.01, clock=clock)
    await cache.set("user:1", _entry(clock, ttl=1))
    clock.advance(5)

    await cache.start()
    await asyncio.sleep(0.05)
    await cache.stop()

    assert cache.size() == 0
    # Stopping twice is harmless.
    await cache.stop()
