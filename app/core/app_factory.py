"""Application factory for the FastAPI app.

Builds the app (metadata, middleware, handlers, routers) and owns the
lifecycle of the quota components: store, exemption registry refresh loop,
identity resolver and tracker.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from app.adapters.quota_store.base import AbstractQuotaStore
from app.adapters.quota_store.factory import create_quota_store
from app.api.routes import admin_router, health_router, quota_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.quota import build_quota_components

logger = logging.getLogger(__name__)


def create_app(store_factory: Callable[[], AbstractQuotaStore] = create_quota_store) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store_factory: Builds the quota store at startup. Tests pass a factory
            returning a prepared in-memory or failing store.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        components = build_quota_components(store_factory(), settings)
        await components.start()
        app.state.quota = components
        logger.info(
            "app.started",
            extra={
                "app_env": settings.app_env,
                "store_backend": settings.quota.store_backend,
                "quota_unit": settings.quota.unit,
                "quota_maximum": settings.quota.maximum,
                "quota_enabled": settings.quota.enabled,
            },
        )
        try:
            yield
        finally:
            await components.shutdown()
            logger.info("app.stopped")

    app = FastAPI(
        title="Voice Quota API",
        description=(
            "Meters the portfolio voice-agent demo: identifies anonymous visitors, "
            "limits each to a configured number of calls or seconds, and lets "
            "administrators exempt their own addresses."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(quota_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
