"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import Settings, settings
from src.tm_common.errors import AppError
from src.tm_common.response import error_response
from src.tm_events.api.router import router as events_router
from src.tm_events.engine.bus import EventBus
from src.tm_gateway.middleware.request_log import RequestLogMiddleware
from src.tm_lifecycle.api.router import router as control_router
from src.tm_lifecycle.application.service import build_lifecycle_manager, close_collaborators
from src.tm_market.api.router import router as market_router

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    logging.getLogger().setLevel(app_settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup: build the lifecycle manager. Shutdown: stop it and close clients."""
        bus = EventBus()
        manager = build_lifecycle_manager(app_settings, bus)
        app.state.event_bus = bus
        app.state.lifecycle = manager
        yield
        await manager.shutdown()
        await close_collaborators(manager)
        logger.info("Lifecycle manager shut down")

    app = FastAPI(
        title=app_settings.APP_NAME,
        version="0.1.0",
        debug=app_settings.DEBUG,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLogMiddleware)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        resp = error_response(exc.code, exc.message)
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
        return JSONResponse(
            status_code=exc.http_status,
            content=resp.model_dump(),
        )

    app.include_router(control_router, prefix="/api/v1")
    app.include_router(market_router, prefix="/api/v1")
    app.include_router(events_router, prefix="/api/v1")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": "0.1.0"}

    return app


app = create_app()
