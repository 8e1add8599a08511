"""Redis-backed window counter store.

The increment and the conditional expiry run inside one Lua script, so Redis
executes them as a single atomic unit. Concurrent requests for the same key
are serialized by the server and always observe distinct counts.
"""

from __future__ import annotations

import asyncio
import logging

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from app.adapters.counter_store.base import AbstractCounterStore, ConnectionState
from app.core.errors import StoreConnectionError, StoreError

logger = logging.getLogger(__name__)

# KEYS[1] = counter key, ARGV[1] = window seconds.
# TTL returns -1 when the key exists without an expiry, which after INCR is
# exactly the "first request of a new window" case.
INCREMENT_WITH_EXPIRY_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if redis.call('TTL', KEYS[1]) == -1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store over a shared Redis instance.

    A single client (and its connection pool) is shared by every request of
    the process. Commands are attempted once: a slow or failing store surfaces
    as ``StoreError`` instead of being retried inline.

    After a connection-level failure the store reports itself not ready and
    pings Redis in the background until it answers again.
    """

    def __init__(
        self,
        *,
        url: str,
        key_prefix: str = "rate_limit:",
        socket_timeout_seconds: float = 1.0,
        connect_timeout_seconds: float = 5.0,
        reconnect_interval_seconds: float = 5.0,
    ) -> None:
        self._url = url
        self._key_prefix = key_prefix
        self._socket_timeout_seconds = socket_timeout_seconds
        self._connect_timeout_seconds = connect_timeout_seconds
        self._reconnect_interval_seconds = reconnect_interval_seconds

        self._client: redis.Redis | None = None
        self._increment_script = None
        self._state = ConnectionState.CONNECTING
        self._reconnect_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def connect(self) -> None:
        """Create the client and confirm the server answers PING.

        Raises:
            StoreConnectionError: If the handshake fails.
        """
        self._state = ConnectionState.CONNECTING
        try:
            client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout_seconds,
                socket_connect_timeout=self._connect_timeout_seconds,
                retry=Retry(NoBackoff(), 0),
            )
        except ValueError as exc:
            self._state = ConnectionState.ERROR
            raise StoreConnectionError(
                code="invalid_store_url",
                message="Counter store URL could not be parsed",
                details={"store_state": ConnectionState.ERROR.value},
            ) from exc

        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            self._state = ConnectionState.ERROR
            await client.aclose()
            logger.error(
                "counter_store.connect_failed",
                extra={"store": "redis", "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StoreConnectionError(
                code="store_connection_failed",
                message="Could not connect to the counter store",
                details={"store_state": ConnectionState.ERROR.value},
            ) from exc

        self._client = client
        self._increment_script = client.register_script(INCREMENT_WITH_EXPIRY_SCRIPT)
        self._state = ConnectionState.READY
        logger.info("counter_store.connected", extra={"store": "redis"})

    def _require_client(self) -> redis.Redis:
        if self._client is None:
            raise StoreError(
                code="store_not_connected",
                message="Counter store client has not been connected",
                details={"store_state": self._state.value},
            )
        return self._client

    def _handle_failure(self, operation: str, exc: Exception) -> StoreError:
        """Log a failed command, track connection loss and build the StoreError."""
        # Timeouts fail the request only; refused or reset connections also
        # take the store out of service until it answers PING again.
        if isinstance(exc, (RedisConnectionError, ConnectionError)):
            self._mark_unavailable()

        logger.warning(
            "counter_store.command_failed",
            extra={
                "store": "redis",
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return StoreError(
            code="store_command_failed",
            message=f"Counter store {operation} failed",
            details={"store_state": self._state.value},
        )

    async def atomic_increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        self._require_client()
        try:
            count = await self._increment_script(keys=[self._key(key)], args=[ttl_seconds])
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise self._handle_failure("increment", exc) from exc
        return int(count)

    async def time_to_live(self, key: str) -> int | None:
        client = self._require_client()
        try:
            ttl = await client.ttl(self._key(key))
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise self._handle_failure("ttl", exc) from exc

        # -2: key absent, -1: key without expiry
        if ttl is None or ttl < 0:
            return None
        return int(ttl)

    def _mark_unavailable(self) -> None:
        if self._state is ConnectionState.READY:
            logger.error("counter_store.connection_lost", extra={"store": "redis"})
        self._state = ConnectionState.ERROR

        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while self._client is not None:
            await asyncio.sleep(self._reconnect_interval_seconds)
            if self._client is None:
                return
            try:
                await self._client.ping()
            except (RedisError, OSError) as exc:
                logger.warning(
                    "counter_store.reconnect_failed",
                    extra={"store": "redis", "error_type": type(exc).__name__},
                )
                continue

            self._state = ConnectionState.READY
            logger.info("counter_store.reconnected", extra={"store": "redis"})
            return

    async def close(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
        self._reconnect_task = None

        client, self._client = self._client, None
        self._increment_script = None
        self._state = ConnectionState.CONNECTING
        if client is not None:
            await client.aclose()
            logger.info("counter_store.closed", extra={"store": "redis"})
