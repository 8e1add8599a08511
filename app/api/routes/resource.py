from fastapi import APIRouter, Depends

from app.core.rate_limit import enforce_rate_limit
from app.schemas.resource import RateLimitExceededResponse, ResourceResponse

router = APIRouter(tags=["Resource"])


@router.get(
    "/api/resource",
    response_model=ResourceResponse,
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        429: {
            "model": RateLimitExceededResponse,
            "description": "Client exceeded its request budget for the current window.",
        },
    },
)
async def get_protected_resource() -> ResourceResponse:
    """Protected resource endpoint.

    Only reached once the rate limiter admitted the request. The limiter adds
    nothing to admitted responses.

    Returns:
        ResourceResponse: Confirmation message.
    """
    return ResourceResponse(message="Success! You have accessed the protected resource.")
