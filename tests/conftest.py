"""Shared test fixtures."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from config.settings import Settings
from src.main import create_app
from src.tm_events.engine.bus import EventBus
from src.tm_lifecycle.application.service import build_lifecycle_manager


@pytest.fixture
def test_settings() -> Settings:
    """Offline collaborators and a fast tick so rounds happen within a test."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        ORACLE_MODE="rules",
        SETTLEMENT_MODE="simulated",
        TICK_INTERVAL_MS=20,
        MAX_ROUNDS=0,
    )


@pytest.fixture
async def app(test_settings: Settings) -> FastAPI:
    """App with lifespan state wired by hand; ASGITransport does not run lifespan."""
    application = create_app(test_settings)
    bus = EventBus()
    manager = build_lifecycle_manager(test_settings, bus)
    application.state.event_bus = bus
    application.state.lifecycle = manager
    yield application
    await manager.shutdown()


@pytest.fixture
async def client(app: FastAPI) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
