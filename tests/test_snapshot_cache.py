"""Unit tests for the TTL snapshot cache."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.core.errors import StoreUnavailableError
from app.utils.snapshot_cache import SnapshotCache


def _outage() -> StoreUnavailableError:
    return StoreUnavailableError(code="store_unavailable", message="down")


def test_serves_fallback_before_first_load(fake_clock) -> None:
    cache = SnapshotCache(AsyncMock(return_value={"a"}), fallback={"fallback"}, clock=fake_clock)

    assert cache.value == {"fallback"}
    assert cache.has_loaded is False
    assert cache.is_stale() is True


def test_rejects_non_positive_ttl() -> None:
    with pytest.raises(ValueError):
        SnapshotCache(AsyncMock(), fallback=None, ttl_seconds=0)


@pytest.mark.asyncio
async def test_refresh_installs_value(fake_clock) -> None:
    cache = SnapshotCache(AsyncMock(return_value={"a"}), fallback=set(), clock=fake_clock)

    assert await cache.refresh() is True

    assert cache.value == {"a"}
    assert cache.is_stale() is False


@pytest.mark.asyncio
async def test_stale_exactly_after_one_ttl(fake_clock) -> None:
    loader = AsyncMock(side_effect=[{"v1"}, {"v2"}])
    cache = SnapshotCache(loader, fallback=set(), ttl_seconds=60, clock=fake_clock)
    await cache.refresh()

    fake_clock.advance(59.9)
    assert await cache.refresh_if_stale() is False
    assert cache.value == {"v1"}

    fake_clock.advance(0.1)
    assert await cache.refresh_if_stale() is True
    assert cache.value == {"v2"}
    assert loader.await_count == 2


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_good_snapshot(fake_clock) -> None:
    loader = AsyncMock(side_effect=[{"good"}, _outage()])
    cache = SnapshotCache(loader, fallback={"fallback"}, ttl_seconds=10, clock=fake_clock)
    await cache.refresh()
    fake_clock.advance(11)

    assert await cache.refresh() is False

    assert cache.value == {"good"}
    assert cache.stats()["failures"] == 1


@pytest.mark.asyncio
async def test_failed_first_load_keeps_fallback(fake_clock) -> None:
    cache = SnapshotCache(AsyncMock(side_effect=_outage()), fallback={"127.0.0.1"}, clock=fake_clock)

    assert await cache.refresh() is False

    assert cache.value == {"127.0.0.1"}
    assert cache.has_loaded is False


@pytest.mark.asyncio
async def test_pull_refresh_backs_off_after_failure(fake_clock) -> None:
    loader = AsyncMock(side_effect=[_outage(), {"recovered"}])
    cache = SnapshotCache(loader, fallback=set(), ttl_seconds=30, clock=fake_clock)

    assert await cache.refresh_if_stale() is False
    fake_clock.advance(5)
    assert await cache.refresh_if_stale() is False
    assert loader.await_count == 1

    fake_clock.advance(25)
    assert await cache.refresh_if_stale() is True
    assert cache.value == {"recovered"}


@pytest.mark.asyncio
async def test_invalidate_forces_reload(fake_clock) -> None:
    loader = AsyncMock(side_effect=[{"v1"}, {"v2"}])
    cache = SnapshotCache(loader, fallback=set(), ttl_seconds=60, clock=fake_clock)
    await cache.refresh()

    cache.invalidate()

    assert cache.is_stale() is True
    assert await cache.refresh_if_stale() is True
    assert cache.value == {"v2"}


@pytest.mark.asyncio
async def test_replace_resets_age(fake_clock) -> None:
    cache = SnapshotCache(AsyncMock(), fallback=set(), ttl_seconds=60, clock=fake_clock)

    cache.replace({"pushed"})
    fake_clock.advance(30)

    assert cache.is_stale() is False
    assert cache.value == {"pushed"}


@pytest.mark.asyncio
async def test_start_loads_and_stop_cancels_loop() -> None:
    loader = AsyncMock(return_value={"a"})
    cache = SnapshotCache(loader, fallback=set(), ttl_seconds=0.01)

    await cache.start()
    await asyncio.sleep(0.05)
    await cache.stop()
    calls_after_stop = loader.await_count
    await asyncio.sleep(0.03)

    assert cache.value == {"a"}
    assert calls_after_stop >= 2
    assert loader.await_count == calls_after_stop


@pytest.mark.asyncio
async def test_stop_without_start_is_noop() -> None:
    cache = SnapshotCache(AsyncMock(), fallback=set())

    await cache.stop()


@pytest.mark.asyncio
async def test_concurrent_pull_refreshes_share_one_failing_load(fake_clock) -> None:
    async def _slow_outage():
        await asyncio.sleep(0.2)
        raise _outage()

    loader = AsyncMock(side_effect=_slow_outage)
    cache = SnapshotCache(loader, fallback={"127.0.0.1"}, ttl_seconds=60, clock=fake_clock)
    loop = asyncio.get_running_loop()
    started = loop.time()

    results = await asyncio.gather(*(cache.refresh_if_stale() for _ in range(10)))

    assert loop.time() - started < 1.0
    assert loader.await_count == 1
    assert results == [False] * 10
    assert cache.value == {"127.0.0.1"}


@pytest.mark.asyncio
async def test_callers_during_inflight_load_get_current_snapshot(fake_clock) -> None:
    release = asyncio.Event()

    async def _gated_load():
        if loader.await_count == 1:
            return {"v1"}
        await release.wait()
        return {"v2"}

    loader = AsyncMock(side_effect=_gated_load)
    cache = SnapshotCache(loader, fallback=set(), ttl_seconds=60, clock=fake_clock)
    await cache.refresh()
    fake_clock.advance(60)

    first = asyncio.create_task(cache.refresh_if_stale())
    await asyncio.sleep(0)

    assert await cache.refresh_if_stale() is False
    assert cache.value == {"v1"}

    release.set()
    assert await first is True
    assert cache.value == {"v2"}
    assert loader.await_count == 2


@pytest.mark.asyncio
async def test_invalidate_clears_backoff_then_failure_backs_off_again(fake_clock) -> None:
    loader = AsyncMock(side_effect=[{"v1"}, _outage(), _outage()])
    cache = SnapshotCache(loader, fallback=set(), ttl_seconds=60, clock=fake_clock)
    await cache.refresh()

    cache.invalidate()
    assert await cache.refresh_if_stale() is False
    assert await cache.refresh_if_stale() is False
    assert loader.await_count == 2

    cache.invalidate()
    assert await cache.refresh_if_stale() is False
    assert loader.await_count == 3
    assert cache.value == {"v1"}
