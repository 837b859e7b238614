"""Application factory for the FastAPI app.

Centralizes app construction (guards, middleware, handlers, routers) so tests
can build isolated apps with their own clocks and limiter state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.sweeper import RateLimitSweeper
from app.api.routes import auth_router, forms_router, health_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import RateLimitRegistry
from app.services.submission_store import InMemorySubmissionStore

logger = logging.getLogger(__name__)


def create_app(
    *,
    rate_limiters: RateLimitRegistry | None = None,
    submission_store: InMemorySubmissionStore | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiters: Guards to use; built from settings when omitted.
        submission_store: Sink for accepted submissions; a fresh one when omitted.
        configure_logs: Whether to (re)configure the root logger.

    Returns:
        Configured FastAPI app with guards, middleware, handlers and routers.
    """
    if configure_logs:
        # Logging first so subsequent init logs are formatted as desired
        configure_logging(settings.log)

    registry = rate_limiters if rate_limiters is not None else RateLimitRegistry.from_settings()
    interval = settings.app.rate_limit_sweep_interval_seconds

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper: RateLimitSweeper | None = None
        if interval > 0:
            sweeper = RateLimitSweeper(registry.limiters(), interval_seconds=interval)
            await sweeper.start()

        logger.info(
            "app.startup_complete",
            extra={"rate_limit_enabled": registry.enabled, "sweep_interval_s": interval},
        )
        try:
            yield
        finally:
            if sweeper is not None:
                await sweeper.stop()
            logger.info("app.shutdown_complete")

    app = FastAPI(
        title="Abuse Guard API",
        description=(
            "Admin login and public contact-form endpoints protected by "
            "per-client attempt limits with escalating blocks."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.rate_limiters = registry
    app.state.submission_store = (
        submission_store if submission_store is not None else InMemorySubmissionStore()
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(auth_router, prefix="/v1")
    app.include_router(forms_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
