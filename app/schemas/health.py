"""Pydantic schemas for liveness and readiness checks."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessResponse(BaseModel):
    """Readiness of the service and its counter store."""

    status: Literal["ready", "degraded"] = Field(
        ...,
        description="'degraded' while the store is unavailable (requests are not limited).",
    )
    store: str = Field(
        ..., description="Counter store connection state: connecting, ready or error."
    )
