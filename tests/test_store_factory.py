"""Tests for counter store selection from the configured URL."""

import pytest

from app.adapters.counter_store.factory import create_counter_store
from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.adapters.counter_store.redis_store import RedisCounterStore
from app.core.config import RedisSettings
from app.core.errors import StoreConnectionError


@pytest.mark.parametrize(
    "url",
    ["redis://localhost:6379/0", "rediss://user:pw@cache:6380", "unix:///tmp/redis.sock"],
)
def test_redis_urls_build_redis_store(url: str) -> None:
    store = create_counter_store(RedisSettings(url=url))

    assert isinstance(store, RedisCounterStore)
    assert store.is_ready() is False


def test_memory_url_builds_in_memory_store() -> None:
    assert isinstance(create_counter_store(RedisSettings(url="memory://")), InMemoryCounterStore)


def test_unknown_scheme_is_rejected() -> None:
    with pytest.raises(StoreConnectionError) as exc_info:
        create_counter_store(RedisSettings(url="memcached://localhost:11211"))

    assert exc_info.value.code == "unsupported_store_url"
