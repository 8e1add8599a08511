"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiter gate into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Injectable: the gate (and its counter store) live on ``app.state`` and are
  built by the app factory, so tests can swap in a fake store.

Rate limiting strategy:
- Fixed-window limit per client network address.
- Forwarded headers are not consulted. Behind a reverse proxy every request
  shares the proxy's address.
- If no address is available, all such requests share one fallback key.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request

from app.core.errors import RateLimitExceededError, UnresolvableClientIdentityError
from app.services.rate_limiter import RateLimiterGate

logger = logging.getLogger(__name__)

FALLBACK_CLIENT_KEY = "unknown"


def get_rate_limiter(request: Request) -> RateLimiterGate:
    """Return the gate built for this application instance."""

    return request.app.state.rate_limiter


def _resolve_client_address(request: Request) -> str:
    """Extract the raw peer address of the request.

    Raises:
        UnresolvableClientIdentityError: If the connection exposes no address.
    """

    client = request.client
    if client is None or not client.host:
        raise UnresolvableClientIdentityError(
            code="client_address_unavailable",
            message="Request has no client network address",
        )
    return client.host


def client_identity_key(request: Request) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.

    Returns:
        str: Raw client address, or the shared fallback key.
    """

    try:
        return _resolve_client_address(request)
    except UnresolvableClientIdentityError as exc:
        logger.warning(
            "rate_limit.fallback_key",
            extra={"error_code": exc.code, "fallback_key": FALLBACK_CLIENT_KEY},
        )
        return FALLBACK_CLIENT_KEY


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing rate limits.

    Counts the request against the client's window. If the client exceeded the
    configured rate, raises ``RateLimitExceededError`` (rendered as HTTP 429).

    Args:
        request: FastAPI request.

    Raises:
        RateLimitExceededError: When the rate limit is exceeded.
        StoreUnavailableError: When the gate is fail-closed and the store is down.
    """

    gate = get_rate_limiter(request)
    key = client_identity_key(request)
    key_hash = _hash_limiter_key(key)

    result = await gate.check(key)
    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "count": result.count,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": result.window_seconds,
                "degraded": result.degraded,
            },
        )
        return

    retry_after = result.retry_after_seconds if result.retry_after_seconds is not None else result.window_seconds
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "count": result.count,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": result.window_seconds,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitExceededError(
        limit=result.limit,
        window_seconds=result.window_seconds,
        retry_after_seconds=retry_after,
        remaining=result.remaining,
    )
