"""
Shared fixtures for integration tests.

Integration tests drive the real FastAPI app through httpx's ASGITransport.
The Firestore dependency is overridden with the in-memory FakeDocumentStore
from the top-level conftest, so no request leaves the process.

All integration tests in this project MUST:
1. Use async tests with @pytest.mark.asyncio
2. Use the `client` fixture (AsyncClient) - NOT TestClient
3. Prefix all routes with /api/v1/

Example:
    @pytest.mark.asyncio
    async def test_something(client, admin_headers):
        response = await client.get(
            "/api/v1/verifications/alice@example.com", headers=admin_headers
        )
        assert response.status_code == 200
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.config import settings
from app.firestore.client import get_firestore_client
from app.main import app


# All API routes are prefixed with this. Use it in your tests!
API_PREFIX = "/api/v1"


@pytest_asyncio.fixture
async def client(fake_store):
    """
    Create async test client with the document store override.

    Clears dependency overrides after the test.
    """
    app.dependency_overrides[get_firestore_client] = lambda: fake_store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": settings.ADMIN_API_TOKEN}
