from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from usage_monitor.core.config.settings import Settings, get_settings
from usage_monitor.core.handlers.exceptions import add_exception_handlers
from usage_monitor.core.logger import setup_logging
from usage_monitor.dependencies import UsageMonitorContainer, build_container
from usage_monitor.modules.credentials.api import router as credentials_router
from usage_monitor.modules.notifications.api import router as notifications_router
from usage_monitor.modules.usage.api import router as usage_router

logger = logging.getLogger(__name__)

ContainerFactory = Callable[[Settings], Awaitable[UsageMonitorContainer]]


def create_app(
    settings: Settings | None = None,
    *,
    container_factory: ContainerFactory = build_container,
    start_monitor: bool = True,
) -> FastAPI:
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        container = await container_factory(app_settings)
        app.state.container = container
        try:
            if start_monitor:
                await container.cache.start()
            yield
        finally:
            await container.aclose()
            logger.info("Usage monitor stopped")

    app = FastAPI(title="Usage Monitor", version="0.1.0", lifespan=lifespan)
    add_exception_handlers(app)
    app.include_router(usage_router)
    app.include_router(credentials_router)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def build_app() -> FastAPI:
    setup_logging()
    return create_app()
