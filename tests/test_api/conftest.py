"""
Fixtures for the API tests: an HTTP client wired to the test store.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from peerhub.api.app import app
from peerhub.api.dependencies import get_session_manager


@pytest_asyncio.fixture
async def client(store):
    app.dependency_overrides[get_session_manager] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
