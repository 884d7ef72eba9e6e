"""Integration-test fixtures.

The app and client fixtures come from tests/conftest.py; each test gets a
fresh lifecycle manager, so no simulation leaks between tests.
"""

import pytest
from httpx import AsyncClient


@pytest.fixture
async def running_client(client: AsyncClient) -> AsyncClient:
    """Client with a simulation already started."""
    resp = await client.post("/api/v1/control", json={"action": "start"})
    assert resp.status_code == 200
    yield client
    await client.post("/api/v1/control", json={"action": "stop"})
