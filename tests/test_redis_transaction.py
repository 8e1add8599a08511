"""Tests running the Redis increment-with-expiry script against fakeredis.

Unlike test_redis_store.py, nothing here mocks the script: the Lua code is
executed by fakeredis, so the fixed-window and no-lost-update guarantees of the
production backend are checked directly.
"""

import asyncio
from unittest.mock import patch

import fakeredis
import pytest

from app.adapters.counter_store.base import ConnectionState
from app.adapters.counter_store.redis_store import RedisCounterStore
from app.core.errors import StoreConnectionError, StoreError
from app.services.rate_limiter import RateLimiterGate

FROM_URL = "app.adapters.counter_store.redis_store.redis.from_url"
KEY = "198.51.100.4"
REDIS_KEY = f"rate_limit:{KEY}"


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


def _client(server: fakeredis.FakeServer) -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=server, decode_responses=True)


async def _connected_store(server: fakeredis.FakeServer, **kwargs) -> tuple[RedisCounterStore, fakeredis.FakeAsyncRedis]:
    client = _client(server)
    store = RedisCounterStore(url="redis://localhost:6379/0", **kwargs)
    with patch(FROM_URL, return_value=client):
        await store.connect()
    return store, client


def test_nth_increment_returns_n_and_sets_window(server: fakeredis.FakeServer) -> None:
    async def scenario() -> tuple[list[int], int]:
        store, client = await _connected_store(server)
        counts = [await store.atomic_increment_with_expiry(KEY, 60) for _ in range(3)]
        ttl = await client.ttl(REDIS_KEY)
        await store.close()
        return counts, ttl

    counts, ttl = asyncio.run(scenario())

    assert counts == [1, 2, 3]
    assert 59 <= ttl <= 60


def test_later_increments_do_not_reset_expiry(server: fakeredis.FakeServer) -> None:
    async def scenario() -> tuple[int, int]:
        store, client = await _connected_store(server)
        for _ in range(3):
            await store.atomic_increment_with_expiry(KEY, 60)
        await client.expire(REDIS_KEY, 5)

        count = await store.atomic_increment_with_expiry(KEY, 60)
        ttl = await client.ttl(REDIS_KEY)
        await store.close()
        return count, ttl

    count, ttl = asyncio.run(scenario())

    assert count == 4
    assert 0 < ttl <= 5


def test_expired_key_restarts_at_one(server: fakeredis.FakeServer) -> None:
    async def scenario() -> tuple[int, int]:
        store, client = await _connected_store(server)
        await store.atomic_increment_with_expiry(KEY, 60)
        await store.atomic_increment_with_expiry(KEY, 60)
        # Simulate window expiry
        await client.delete(REDIS_KEY)

        count = await store.atomic_increment_with_expiry(KEY, 60)
        ttl = await client.ttl(REDIS_KEY)
        await store.close()
        return count, ttl

    count, ttl = asyncio.run(scenario())

    assert count == 1
    assert 59 <= ttl <= 60


def test_concurrent_increments_get_distinct_counts(server: fakeredis.FakeServer) -> None:
    async def scenario() -> list[int]:
        store, _ = await _connected_store(server)
        counts = await asyncio.gather(
            *(store.atomic_increment_with_expiry(KEY, 60) for _ in range(50))
        )
        await store.close()
        return list(counts)

    assert sorted(asyncio.run(scenario())) == list(range(1, 51))


def test_time_to_live_reads_window(server: fakeredis.FakeServer) -> None:
    async def scenario() -> tuple[int | None, int | None]:
        store, _ = await _connected_store(server)
        before = await store.time_to_live(KEY)
        await store.atomic_increment_with_expiry(KEY, 30)
        after = await store.time_to_live(KEY)
        await store.close()
        return before, after

    before, after = asyncio.run(scenario())

    assert before is None
    assert 29 <= after <= 30


def test_gate_over_redis_admits_up_to_limit(server: fakeredis.FakeServer) -> None:
    async def scenario() -> list:
        store, _ = await _connected_store(server)
        gate = RateLimiterGate(store, limit=2, window_seconds=60)
        results = [await gate.check(KEY) for _ in range(3)]
        await store.close()
        return results

    results = asyncio.run(scenario())

    assert [r.allowed for r in results] == [True, True, False]
    assert [r.count for r in results] == [1, 2, 3]
    assert 59 <= results[-1].retry_after_seconds <= 60


def test_connect_fails_when_server_down(server: fakeredis.FakeServer) -> None:
    server.connected = False
    store = RedisCounterStore(url="redis://localhost:6379/0")

    with patch(FROM_URL, return_value=_client(server)):
        with pytest.raises(StoreConnectionError):
            asyncio.run(store.connect())

    assert store.state is ConnectionState.ERROR


def test_outage_fails_open_then_recovers(server: fakeredis.FakeServer) -> None:
    async def scenario() -> tuple[list[ConnectionState], list[bool], bool]:
        store, _ = await _connected_store(server, reconnect_interval_seconds=0.01)
        gate = RateLimiterGate(store, limit=1, window_seconds=60)
        await gate.check(KEY)

        server.connected = False
        with pytest.raises(StoreError):
            await store.atomic_increment_with_expiry(KEY, 60)
        states = [store.state]
        admitted = [(await gate.check(KEY)).allowed for _ in range(3)]

        server.connected = True
        await asyncio.sleep(0.1)
        states.append(store.state)
        limited = (await gate.check(KEY)).allowed
        await store.close()
        return states, admitted, limited

    states, admitted, limited = asyncio.run(scenario())

    assert states == [ConnectionState.ERROR, ConnectionState.READY]
    assert admitted == [True, True, True]
    # Counter survived the outage: the window still holds the first request
    assert limited is False
