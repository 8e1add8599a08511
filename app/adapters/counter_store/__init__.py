"""Counter store adapters.

The rate limiter gate depends only on ``AbstractCounterStore``. Redis is the
production backend; the in-memory store backs tests and single-process local
development (``memory://`` URLs).
"""

from __future__ import annotations

from app.adapters.counter_store.base import AbstractCounterStore, ConnectionState
from app.adapters.counter_store.factory import create_counter_store
from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.adapters.counter_store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "ConnectionState",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
