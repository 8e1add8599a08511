"""Counter store factory.

Selects the store implementation from the configured URL scheme.
"""

from __future__ import annotations

from urllib.parse import urlparse

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.adapters.counter_store.redis_store import RedisCounterStore
from app.core.config import RedisSettings, settings
from app.core.errors import StoreConnectionError

REDIS_SCHEMES = {"redis", "rediss", "unix"}


def create_counter_store(store_settings: RedisSettings | None = None) -> AbstractCounterStore:
    """Create a counter store based on configuration.

    Args:
        store_settings: Store settings; defaults to the global settings.

    Returns:
        Unconnected counter store instance.

    Raises:
        StoreConnectionError: If the URL scheme is not supported.
    """
    cfg = store_settings or settings.redis
    scheme = urlparse(cfg.url).scheme.lower()

    if scheme in REDIS_SCHEMES:
        return RedisCounterStore(
            url=cfg.url,
            key_prefix=cfg.key_prefix,
            socket_timeout_seconds=cfg.socket_timeout_seconds,
            connect_timeout_seconds=cfg.connect_timeout_seconds,
            reconnect_interval_seconds=cfg.reconnect_interval_seconds,
        )

    if scheme == "memory":
        return InMemoryCounterStore()

    raise StoreConnectionError(
        code="unsupported_store_url",
        message=f"Unsupported counter store URL scheme: '{scheme}'",
        details={"hint": "Use redis://, rediss://, unix:// or memory://"},
    )
