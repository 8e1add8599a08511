"""Pydantic schemas for the protected resource and its throttling responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ResourceResponse(BaseModel):
    """Payload returned by the protected resource when the request is admitted."""

    message: str = Field(
        ..., description="Confirmation that the protected resource was reached."
    )


class RateLimitExceededResponse(BaseModel):
    """Body of a 429 response.

    Carries the configured policy so the caller can compute a retry strategy.
    """

    message: str = Field(
        "Too Many Requests", description="Human-readable refusal reason."
    )
    limit: int = Field(
        ..., description="Maximum requests admitted per window."
    )
    window: str = Field(
        ..., description="Window length formatted as '<seconds>s' (e.g., '60s')."
    )
