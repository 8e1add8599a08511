from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers, counter
store lifecycle) so tests can build isolated instances with their own settings
and a fake store.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.counter_store.factory import create_counter_store
from app.api.routes import health_router, resource_router
from app.core.config import Settings, settings
from app.core.errors import StoreConnectionError
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.services.rate_limiter import RateLimiterGate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect the counter store before serving and close it on shutdown.

    A failed first connection aborts startup: the gate is never put in front
    of the resource without a confirmed store.
    """
    store: AbstractCounterStore = app.state.counter_store
    try:
        await store.connect()
    except StoreConnectionError as exc:
        logger.critical(
            "startup.aborted",
            extra={"reason": "counter_store_unreachable", "error_code": exc.code},
        )
        raise

    gate: RateLimiterGate = app.state.rate_limiter
    logger.info(
        "startup.complete",
        extra={
            "limit": gate.limit,
            "window_s": gate.window_seconds,
            "fail_open": gate.fail_open,
        },
    )
    try:
        yield
    finally:
        await store.close()
        logger.info("shutdown.complete")


def create_app(
    app_settings: Settings | None = None,
    store: AbstractCounterStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the global settings.
        store: Counter store to use; defaults to one built from settings.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    counter_store = store or create_counter_store(cfg.redis)
    gate = RateLimiterGate(
        counter_store,
        limit=cfg.rate_limit.requests,
        window_seconds=cfg.rate_limit.window_seconds,
        fail_open=cfg.rate_limit.fail_open,
    )

    app = FastAPI(
        title="Rate Limit Gateway",
        description=(
            "Protected resource behind a per-client fixed-window rate limiter. "
            "Counters live in a shared Redis instance so every process enforces "
            "the same budget. Throttled requests receive HTTP 429."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.counter_store = counter_store
    app.state.rate_limiter = gate

    # Middleware
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            cfg.log.request_id_header,
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Window",
        ],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(resource_router)
    app.include_router(health_router)

    return app
