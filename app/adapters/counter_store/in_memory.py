"""In-memory window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  Use it for tests and local development, never behind a load balancer.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.counter_store.base import AbstractCounterStore, ConnectionState
from app.core.errors import StoreError


@dataclass
class _WindowCounter:
    count: int
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping window counters in a process-local dict.

    Mirrors the Redis semantics: a key is created at 1 on its first increment,
    its expiry is set only while it has none, and an expired key is recreated
    at 1 on the next increment. Each key's window therefore starts at its own
    first request.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning seconds; injectable for tests.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, _WindowCounter] = {}
        self._state = ConnectionState.CONNECTING

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def connect(self) -> None:
        self._state = ConnectionState.READY

    async def close(self) -> None:
        with self._lock:
            self._counters.clear()
        self._state = ConnectionState.CONNECTING

    def _live_counter(self, key: str, now: float) -> _WindowCounter | None:
        """Return the counter for key, evicting it if its window elapsed."""
        counter = self._counters.get(key)
        if counter is not None and counter.expires_at is not None and counter.expires_at <= now:
            del self._counters[key]
            return None
        return counter

    def _ensure_ready(self) -> None:
        if self._state is not ConnectionState.READY:
            raise StoreError(
                code="store_not_connected",
                message="In-memory counter store is not connected",
                details={"store_state": self._state.value},
            )

    async def atomic_increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        self._ensure_ready()
        now = self._clock()

        with self._lock:
            counter = self._live_counter(key, now)
            if counter is None:
                counter = _WindowCounter(count=0, expires_at=None)
                self._counters[key] = counter

            counter.count += 1
            if counter.expires_at is None:
                counter.expires_at = now + ttl_seconds
            return counter.count

    async def time_to_live(self, key: str) -> int | None:
        self._ensure_ready()
        now = self._clock()

        with self._lock:
            counter = self._live_counter(key, now)
            if counter is None or counter.expires_at is None:
                return None
            return max(0, int(math.ceil(counter.expires_at - now)))
