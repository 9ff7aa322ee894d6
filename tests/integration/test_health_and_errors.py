from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from usage_monitor.core.handlers.exceptions import add_exception_handlers
from usage_monitor.modules.credentials.errors import CredentialDuplicateError, CredentialUnexpectedError

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_health_endpoint_ok(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_api_validation_error_returns_dashboard_payload(async_client):
    response = await async_client.put("/api/credentials/source", json={"source": "keychain"})
    assert response.status_code == 422
    payload = response.json()
    assert payload["error"]["code"] == "validation_error"
    assert payload["error"]["message"] == "Invalid request payload"
    assert payload["error"]["field"] == "source"


@pytest.mark.asyncio
async def test_blank_token_is_rejected(async_client):
    response = await async_client.put("/api/credentials/manual", json={"token": "   "})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_api_not_found_returns_dashboard_payload(async_client):
    response = await async_client.get("/api/does-not-exist")
    assert response.status_code == 404
    payload = response.json()
    assert payload["error"]["code"] == "http_404"
    assert payload["error"]["message"] == "Not Found"


@pytest.mark.asyncio
async def test_non_api_not_found_uses_default_payload(async_client):
    response = await async_client.get("/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status_code", "code"),
    [
        (CredentialDuplicateError(), 409, "credential_exists"),
        (CredentialUnexpectedError(5), 500, "credential_unexpected"),
    ],
)
async def test_credential_errors_map_to_dashboard_payload(error, status_code, code):
    app = FastAPI()
    add_exception_handlers(app)

    @app.put("/api/credentials/manual")
    async def _fail() -> None:
        raise error

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.put("/api/credentials/manual")

    assert response.status_code == status_code
    assert response.json() == {"error": {"code": code, "message": error.message}}
