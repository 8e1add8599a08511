from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.resource import router as resource_router

__all__ = ["health_router", "resource_router"]
