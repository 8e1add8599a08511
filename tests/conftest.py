"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any app import so the global settings
resolve to an in-process counter store instead of a real Redis server.
"""

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("REDIS_URL", "memory://")
os.environ.setdefault("LOG_FORMAT", "plain")

from unittest.mock import Mock

import pytest

from app.adapters.counter_store.base import ConnectionState
from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.core.errors import StoreConnectionError, StoreError


class FaultInjectingStore(InMemoryCounterStore):
    """In-memory store whose reachability and transactions can be broken on demand."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.reachable = True
        self.fail_transactions = False
        self.fail_ttl_lookups = False
        self.increment_calls = 0

    @property
    def state(self) -> ConnectionState:
        if not self.reachable:
            return ConnectionState.ERROR
        return super().state

    async def connect(self) -> None:
        if not self.reachable:
            raise StoreConnectionError(
                code="store_connection_failed",
                message="Could not connect to the counter store",
            )
        await super().connect()

    async def atomic_increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        self.increment_calls += 1
        if self.fail_transactions:
            raise StoreError(code="store_command_failed", message="injected failure")
        return await super().atomic_increment_with_expiry(key, ttl_seconds)

    async def time_to_live(self, key: str) -> int | None:
        if self.fail_ttl_lookups:
            raise StoreError(code="store_command_failed", message="injected failure")
        return await super().time_to_live(key)


@pytest.fixture
def clock() -> Mock:
    """Controllable time source starting at t=1000s."""
    return Mock(return_value=1000.0)


@pytest.fixture
def store(clock: Mock) -> FaultInjectingStore:
    """Unconnected fault-injectable store driven by the mock clock."""
    return FaultInjectingStore(clock=clock)
