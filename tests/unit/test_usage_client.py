from __future__ import annotations

from types import TracebackType
from typing import cast

import aiohttp
import pytest

from usage_monitor.core.clients.http import HttpClient
from usage_monitor.core.clients.usage import UsageClient
from usage_monitor.core.config.settings import Settings
from usage_monitor.core.usage.errors import DecodingError, HttpStatusError, InvalidURLError, NetworkError

pytestmark = pytest.mark.unit


class _FakeResponse:
    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None


class _FakeSession:
    def __init__(self, *, status: int = 200, body: str | bytes = "{}", error: Exception | None = None) -> None:
        self._status = status
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self._error = error
        self.calls: list[dict[str, object]] = []

    def get(self, url: str, *, headers: dict[str, str], timeout: aiohttp.ClientTimeout) -> _FakeResponse:
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self._error is not None:
            raise self._error
        return _FakeResponse(self._status, self._body)


def _client(session: _FakeSession, **overrides: object) -> UsageClient:
    settings = Settings(**overrides)  # type: ignore[arg-type]
    return UsageClient(HttpClient(), settings=settings, session=cast(aiohttp.ClientSession, session))


@pytest.mark.asyncio
async def test_fetch_usage_sends_expected_request():
    session = _FakeSession(body='{"five_hour": {"utilization": 6.0, "resets_at": null}}')
    client = _client(session)

    response = await client.fetch_usage("secret-token")

    assert response.five_hour is not None
    assert response.five_hour.utilization == 6.0
    call = session.calls[0]
    assert call["url"] == "https://api.anthropic.com/api/oauth/usage"
    headers = cast(dict[str, str], call["headers"])
    assert headers["Authorization"] == "Bearer secret-token"
    assert headers["anthropic-beta"] == "oauth-2025-04-20"
    assert headers["User-Agent"] == "claude-code/2.0.32"
    assert headers["Accept"] == "application/json"
    timeout = cast(aiohttp.ClientTimeout, call["timeout"])
    assert timeout.total == 30.0


@pytest.mark.asyncio
async def test_fetch_usage_raises_http_error_with_body():
    client = _client(_FakeSession(status=401, body=" unauthorized \n"))

    with pytest.raises(HttpStatusError) as exc_info:
        await client.fetch_usage("token")

    assert exc_info.value.status_code == 401
    assert exc_info.value.body == "unauthorized"
    assert exc_info.value.recovery_suggestion is not None


@pytest.mark.asyncio
async def test_fetch_usage_raises_decoding_error_for_bad_payload():
    client = _client(_FakeSession(body='{"five_hour": {"utilization": "lots"}}'))

    with pytest.raises(DecodingError):
        await client.fetch_usage("token")


@pytest.mark.asyncio
async def test_fetch_usage_raises_decoding_error_for_non_json():
    client = _client(_FakeSession(body="<html>"))

    with pytest.raises(DecodingError):
        await client.fetch_usage("token")


@pytest.mark.asyncio
async def test_fetch_usage_wraps_transport_errors():
    client = _client(_FakeSession(error=aiohttp.ClientConnectionError("connection refused")))

    with pytest.raises(NetworkError) as exc_info:
        await client.fetch_usage("token")

    assert "connection refused" in (exc_info.value.failure_reason or "")


@pytest.mark.asyncio
async def test_fetch_usage_rejects_invalid_url():
    session = _FakeSession()
    client = _client(session, usage_base_url="not a url")

    with pytest.raises(InvalidURLError):
        await client.fetch_usage("token")
    assert session.calls == []


@pytest.mark.asyncio
async def test_validate_token_reports_success_and_failure():
    assert await _client(_FakeSession(body="{}")).validate_token("token") is True
    assert await _client(_FakeSession(status=403, body="")).validate_token("token") is False


@pytest.mark.asyncio
async def test_fetch_usage_classifies_invalid_utf8_payload():
    client = _client(_FakeSession(body=b'{"five_hour": {"utilization": 6.0, "x": "\xff\xfe"}}'))

    with pytest.raises(DecodingError):
        await client.fetch_usage("token")
    assert await client.validate_token("token") is False


@pytest.mark.asyncio
async def test_http_error_body_with_invalid_utf8_is_replaced():
    client = _client(_FakeSession(status=500, body=b"bad \xff gateway"))

    with pytest.raises(HttpStatusError) as exc_info:
        await client.fetch_usage("token")

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "bad \ufffd gateway"
