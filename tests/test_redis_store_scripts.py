"""Redis quota store against an in-process Redis emulator.

These run the real check-and-increment Lua script and sorted-set commands,
unlike test_redis_store.py which mocks the client.
"""

import asyncio
import itertools
from types import SimpleNamespace

import fakeredis
import pytest
import pytest_asyncio

from app.adapters.quota_store import redis_store
from app.adapters.quota_store.redis_store import RedisQuotaStore


@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def store(redis_client) -> RedisQuotaStore:
    return RedisQuotaStore(redis_client, key_prefix="test-quota", timeout_seconds=1.0)


@pytest.mark.asyncio
async def test_concurrent_consumes_never_exceed_ceiling(store: RedisQuotaStore, redis_client) -> None:
    results = await asyncio.gather(*(store.consume("visitor", 1, ceiling=3) for _ in range(10)))

    assert sum(result.applied for result in results) == 3
    assert await store.get_consumed("visitor") == 3
    assert await redis_client.get("test-quota:usage:visitor") == "3"


@pytest.mark.asyncio
async def test_seconds_budget_is_clamped_to_ceiling(store: RedisQuotaStore) -> None:
    first = await store.consume("visitor", 45, ceiling=120)
    second = await store.consume("visitor", 80, ceiling=120)

    assert (first.applied, first.consumed) == (True, 45)
    assert (second.applied, second.consumed) == (True, 120)
    assert await store.get_consumed("visitor") == 120


@pytest.mark.asyncio
async def test_consume_rejected_once_at_ceiling(store: RedisQuotaStore) -> None:
    await store.consume("visitor", 1, ceiling=1)

    result = await store.consume("visitor", 1, ceiling=1)

    assert result.applied is False
    assert result.consumed == 1
    assert await store.get_consumed("visitor") == 1


@pytest.mark.asyncio
async def test_zero_amount_is_applied_without_changing_usage(store: RedisQuotaStore) -> None:
    result = await store.consume("visitor", 0, ceiling=5)

    assert result.applied is True
    assert result.consumed == 0


@pytest.mark.asyncio
async def test_identities_are_counted_separately(store: RedisQuotaStore) -> None:
    await store.consume("a", 1, ceiling=1)

    result = await store.consume("b", 1, ceiling=1)

    assert result.applied is True
    assert await store.get_consumed("a") == 1


@pytest.mark.asyncio
async def test_increment_and_reset(store: RedisQuotaStore) -> None:
    assert await store.increment("visitor", 2) == 2
    assert await store.increment("visitor", 3) == 5

    await store.reset("visitor")

    assert await store.get_consumed("visitor") == 0
    assert (await store.consume("visitor", 1, ceiling=1)).applied is True


@pytest.mark.asyncio
async def test_exempt_addresses_keep_insertion_order(store: RedisQuotaStore, monkeypatch) -> None:
    monkeypatch.setattr(redis_store, "time", SimpleNamespace(time=itertools.count(1).__next__))

    assert await store.add_exempt_address("10.0.0.2") is True
    assert await store.add_exempt_address("10.0.0.1") is True
    assert await store.add_exempt_address("10.0.0.2") is False

    assert await store.list_exempt_addresses() == ["10.0.0.2", "10.0.0.1"]

    assert await store.remove_exempt_address("10.0.0.2") is True
    assert await store.remove_exempt_address("10.0.0.2") is False
    assert await store.list_exempt_addresses() == ["10.0.0.1"]
