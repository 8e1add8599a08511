"""Counter store interfaces.

The gate depends on this abstraction (not a concrete client) so the shared
store can be swapped, and replaced by a deterministic fake in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle of the process-wide store connection."""

    CONNECTING = "connecting"
    READY = "ready"
    ERROR = "error"


class AbstractCounterStore(ABC):
    """Interface for shared window counter stores."""

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Current connection state."""
        raise NotImplementedError

    def is_ready(self) -> bool:
        """Return True only after a successful handshake and while healthy."""
        return self.state is ConnectionState.READY

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection.

        Raises:
            StoreConnectionError: If the handshake does not succeed.
        """
        raise NotImplementedError

    @abstractmethod
    async def atomic_increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Increment ``key`` and set its expiry only if it has none, atomically.

        Args:
            key: Window counter key (client identity).
            ttl_seconds: Expiry applied when the key has no TTL yet.

        Returns:
            The post-increment count.

        Raises:
            StoreError: On network error, store-side error or timeout.
        """
        raise NotImplementedError

    @abstractmethod
    async def time_to_live(self, key: str) -> int | None:
        """Return remaining window seconds, or None when absent or without TTL.

        Raises:
            StoreError: On network error, store-side error or timeout.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""
        raise NotImplementedError
