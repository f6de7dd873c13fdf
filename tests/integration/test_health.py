import pytest
from httpx import AsyncClient, ASGITransport

import app.main as app_main

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_root_and_health():
    transport = ASGITransport(app=app_main.app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        root = await ac.get("/")
        health = await ac.get("/health")

    assert root.status_code == 200
    assert root.json()["docs"] == "/docs"
    assert health.status_code == 200
    assert health.json()["checks"]["database"] == "connected"
