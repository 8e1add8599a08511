"""Application-level exception types.

This module defines domain errors used across the gate, the counter store
adapters and the HTTP layer, enabling consistent error handling, logging, and
API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep the shape flexible while encouraging
    consistent keys across the codebase.
    """

    hint: str
    limit: int
    window_seconds: int
    retry_after: int
    remaining: int
    store_state: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class StoreConnectionError(AppError):
    """Raised when the counter store handshake fails."""


class StoreError(AppError):
    """Raised when a counter store transaction fails (network, server, timeout)."""


class StoreUnavailableError(AppError):
    """Raised by a fail-closed gate when the counter store cannot be used."""


class UnresolvableClientIdentityError(AppError):
    """Raised when a request carries no usable client network address."""


class RateLimitExceededError(AppError):
    """Raised when a client exceeded its request budget for the window."""

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        retry_after_seconds: int,
        remaining: int = 0,
    ) -> None:
        super().__init__(
            code="rate_limit_exceeded",
            message="Too Many Requests",
            details={
                "limit": limit,
                "window_seconds": window_seconds,
                "retry_after": retry_after_seconds,
                "remaining": remaining,
            },
        )
        self.limit = limit
        self.window_seconds = window_seconds
        self.retry_after_seconds = retry_after_seconds
        self.remaining = remaining
