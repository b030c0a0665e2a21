"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the long-lived collaborators: the rate limiter registry, its sweeper and
the message localizer. They are attached to ``app.state`` so middleware and
routes reach them through the request instead of module globals.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from app.adapters.rate_limit.sweeper import RateLimiterSweeper
from app.api.routes import health_router
from app.core.config import Settings
from app.core.config import settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.i18n import CATALOG_DIR, Localizer, parse_language_list
from app.core.logging import configure_logging
from app.core.middleware import access_log_middleware, request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import rate_limit_middleware

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    localizer: Localizer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to use; defaults to the environment-loaded ones.
        rate_limiter: Registry to use instead of building one from settings.
        localizer: Localizer to use instead of loading the bundled catalogs.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(
        cfg.log,
        static_fields={"app": cfg.app.service_name, "environment": cfg.app_env},
        debug=cfg.app.debug,
    )

    if localizer is None:
        languages = parse_language_list(cfg.app.supported_languages)
        if cfg.app.default_language.lower() not in languages:
            languages.append(cfg.app.default_language.lower())
        localizer = Localizer.from_directory(
            CATALOG_DIR, languages, default_language=cfg.app.default_language
        )

    if rate_limiter is None:
        rate_limiter = InMemoryTokenBucketRateLimiter(
            rate=cfg.rate_limit.rate,
            burst=cfg.rate_limit.burst,
        )

    sweeper = RateLimiterSweeper(
        rate_limiter,
        interval_seconds=cfg.rate_limit.sweep_interval_seconds,
        idle_threshold_seconds=cfg.rate_limit.idle_threshold_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if cfg.rate_limit.enabled:
            sweeper.start()
        logger.info(
            "app.startup",
            extra={
                "rate_limit_enabled": cfg.rate_limit.enabled,
                "rate": cfg.rate_limit.rate,
                "burst": cfg.rate_limit.burst,
            },
        )
        try:
            yield
        finally:
            await sweeper.stop()
            logger.info("app.shutdown")

    app = FastAPI(
        title="Book System API",
        description=(
            "Book catalogue service edge. Every request is throttled per client "
            "IP with a token bucket; throttled requests receive HTTP 429 with a "
            "localized {code, message} body."
        ),
        version=cfg.app.version,
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.rate_limiter = rate_limiter
    app.state.rate_limit_sweeper = sweeper
    app.state.localizer = localizer
    app.state.started_at = time.monotonic()

    # Middleware: the last registered runs first, so the order on the wire is
    # request id -> access log -> rate limit -> routes
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(access_log_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)

    # OpenAPI customizations (tags, error schema, 429 responses)
    apply_openapi_customizations(app)

    return app
