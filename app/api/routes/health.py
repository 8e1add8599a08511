from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.schemas.health import HealthResponse, ReadinessResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness check endpoint.

    Never rate limited and never touches the counter store. Used by load
    balancers to determine that the process is serving.

    Returns:
        HealthResponse: status "ok".
    """

    return HealthResponse()


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
def readiness_check(request: Request) -> JSONResponse:
    """Readiness check reporting the counter store connection state.

    Returns 503 while the store is unavailable. The gated route keeps serving
    in that state (fail open), so this is the place to notice it.
    """

    store = request.app.state.rate_limiter.store
    body = ReadinessResponse(
        status="ready" if store.is_ready() else "degraded",
        store=store.state.value,
    )
    return JSONResponse(
        status_code=200 if store.is_ready() else 503,
        content=body.model_dump(),
    )
