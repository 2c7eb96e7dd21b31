"""Application factory for the FastAPI app.

Builds the app with its limiter, middleware, handlers and routers. The
general limiter is created per app instance, so every app (and every test)
gets its own counters, and the lifespan owns the sliding-window sweep task.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI

from playex import __version__
from playex.adapters.rate_limit.sliding_window import SlidingWindowPolicy
from playex.api.routes import health_router
from playex.core.config import Settings, settings as default_settings
from playex.core.exception_handlers import setup_exception_handlers
from playex.core.logging import configure_logging
from playex.core.middleware import admission_outcome_middleware, request_id_middleware
from playex.core.rate_limit import RateLimitDependency, build_general_rate_limit

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    general_limit: RateLimitDependency | None = None
    if cfg.app.rate_limit_enabled:
        general_limit = build_general_rate_limit(cfg.app)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        policy = general_limit.policy if general_limit else None
        if isinstance(policy, SlidingWindowPolicy):
            await policy.start()
        logger.info(
            "app.startup",
            extra={
                "app_env": cfg.app_env,
                "rate_limit_enabled": general_limit is not None,
                "rate_limit_strategy": cfg.app.rate_limit_strategy,
            },
        )
        try:
            yield
        finally:
            if isinstance(policy, SlidingWindowPolicy):
                await policy.stop()
            logger.info("app.shutdown")

    app = FastAPI(
        title="Playex API",
        description=(
            "Backend for the Playex media-discovery app. Every route sits behind "
            "a per-client admission controller that answers 429 with a "
            "Retry-After hint when a client exceeds its budget."
        ),
        version=__version__,
        lifespan=lifespan,
        dependencies=[Depends(general_limit)] if general_limit else None,
    )
    app.state.settings = cfg
    app.state.general_rate_limit = general_limit

    # Middleware: last registered runs first
    app.middleware("http")(admission_outcome_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
