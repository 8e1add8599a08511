"""Fixed-window rate limiter gate.

The gate owns no counters. Every decision is one atomic increment-and-expire
round trip to the shared counter store, followed by a threshold comparison:

- count <= limit: admitted
- count >  limit: rejected

When the store cannot be used (not ready, or the transaction fails) the gate
either admits the request (fail open, the default) or raises
``StoreUnavailableError`` (fail closed). Store faults never reach the caller
in fail-open mode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.errors import StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single gate decision.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        window_seconds: Window length in seconds.
        remaining: Requests left in the current window (0 when blocked).
        count: Post-increment count, or None when the store was bypassed.
        retry_after_seconds: Suggested wait when blocked, None when allowed.
        degraded: True when admitted without consulting the store.
    """

    allowed: bool
    limit: int
    window_seconds: int
    remaining: int
    count: int | None = None
    retry_after_seconds: int | None = None
    degraded: bool = False


class RateLimiterGate:
    """Admit or reject requests per client key using a shared counter store."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        fail_open: bool = True,
    ) -> None:
        """Initialize the gate.

        Args:
            store: Connected (or connecting) counter store shared by the process.
            limit: Maximum admitted requests per window, inclusive.
            window_seconds: Fixed window length in seconds.
            fail_open: Admit requests when the store is unavailable.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._fail_open = fail_open

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    @property
    def fail_open(self) -> bool:
        return self._fail_open

    def _bypass(self, reason: str) -> RateLimitResult:
        """Apply the unavailability policy for a request the store cannot count."""
        if not self._fail_open:
            raise StoreUnavailableError(
                code="rate_limiter_unavailable",
                message="Rate limiter is temporarily unavailable. Try again later.",
                details={"store_state": self._store.state.value, "hint": reason},
            )

        logger.warning(
            "rate_limit.fail_open",
            extra={"reason": reason, "store_state": self._store.state.value},
        )
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            window_seconds=self._window_seconds,
            remaining=self._limit,
            degraded=True,
        )

    async def check(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it is admitted.

        A rejected result carries the seconds left in the key's window, read
        from the store (one extra round trip, only on rejection).

        Args:
            key: Client identity key.

        Returns:
            RateLimitResult with the decision and window metadata.

        Raises:
            StoreUnavailableError: Only in fail-closed mode, when the store
                is not ready or the transaction failed.
        """
        if not self._store.is_ready():
            return self._bypass("store_not_ready")

        try:
            count = await self._store.atomic_increment_with_expiry(key, self._window_seconds)
        except StoreError:
            return self._bypass("store_error")

        if count > self._limit:
            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                window_seconds=self._window_seconds,
                remaining=0,
                count=count,
                retry_after_seconds=await self._seconds_until_reset(key),
            )

        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            window_seconds=self._window_seconds,
            remaining=max(0, self._limit - count),
            count=count,
        )

    async def _seconds_until_reset(self, key: str) -> int:
        """Remaining TTL of ``key``, or the full window when the store cannot tell."""
        try:
            ttl = await self._store.time_to_live(key)
        except StoreError:
            return self._window_seconds
        if ttl is None:
            return self._window_seconds
        return ttl
