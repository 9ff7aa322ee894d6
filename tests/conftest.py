from __future__ import annotations

import json
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from usage_monitor.core.clients.http import HttpClient
from usage_monitor.core.config.settings import Settings
from usage_monitor.core.crypto import TokenEncryptor
from usage_monitor.core.usage.models import UsageResponse
from usage_monitor.db.session import create_engine, create_session_factory, init_db
from usage_monitor.dependencies import UsageMonitorContainer
from usage_monitor.main import create_app
from usage_monitor.modules.credentials.repository import ClaudeCodeCredentialFile, SqlManualCredentialStore
from usage_monitor.modules.credentials.service import CredentialResolver
from usage_monitor.modules.notifications.delivery import LoggingNotificationDelivery
from usage_monitor.modules.notifications.service import ThresholdNotifier
from usage_monitor.modules.storage.repository import SqlBlobStore
from usage_monitor.modules.usage.service import UsageStateCache

USAGE_PAYLOAD = {
    "five_hour": {"utilization": 6.0, "resets_at": "2099-01-01T05:00:00Z"},
    "seven_day": {"utilization": 35.0, "resets_at": "2099-01-07T00:00:00.123456+00:00"},
    "seven_day_opus": {"utilization": 0.0, "resets_at": None},
}


class FakeUsageFetcher:
    def __init__(self) -> None:
        self.tokens: list[str] = []
        self.payload: dict[str, object] = dict(USAGE_PAYLOAD)
        self.valid_tokens = {"sk-ant-valid"}

    async def fetch_usage(self, token: str) -> UsageResponse:
        self.tokens.append(token)
        return UsageResponse.model_validate(self.payload)

    async def validate_token(self, token: str) -> bool:
        return token in self.valid_tokens


@dataclass(slots=True)
class MonitorHarness:
    app: FastAPI
    container: UsageMonitorContainer
    fetcher: FakeUsageFetcher
    credentials_path: Path


def write_primary_credentials(path: Path, token: str) -> None:
    path.write_text(json.dumps({"claudeAiOauth": {"accessToken": token}}), encoding="utf-8")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
        encryption_key_file=tmp_path / "encryption.key",
        primary_credentials_path=tmp_path / ".credentials.json",
    )


async def build_test_container(settings: Settings, fetcher: FakeUsageFetcher) -> UsageMonitorContainer:
    engine = create_engine(settings.database_url)
    await init_db(engine)
    session_factory = create_session_factory(engine)
    store = SqlBlobStore(session_factory)
    resolver = CredentialResolver(
        ClaudeCodeCredentialFile(settings.primary_credentials_path),
        SqlManualCredentialStore(session_factory, TokenEncryptor(key_file=settings.encryption_key_file)),
    )
    notifier = await ThresholdNotifier.create(LoggingNotificationDelivery(), store)
    cache = await UsageStateCache.create(resolver, fetcher, notifier, store, refresh_interval_seconds=3600)
    return UsageMonitorContainer(
        settings=settings,
        engine=engine,
        http_client=HttpClient(),
        resolver=resolver,
        notifier=notifier,
        cache=cache,
    )


@pytest_asyncio.fixture
async def monitor(settings: Settings) -> AsyncIterator[MonitorHarness]:
    fetcher = FakeUsageFetcher()
    write_primary_credentials(settings.primary_credentials_path, "sk-ant-primary")
    container = await build_test_container(settings, fetcher)
    app = create_app(settings, start_monitor=False)
    app.state.container = container
    try:
        yield MonitorHarness(
            app=app,
            container=container,
            fetcher=fetcher,
            credentials_path=settings.primary_credentials_path,
        )
    finally:
        await container.aclose()


@pytest_asyncio.fixture
async def async_client(monitor: MonitorHarness) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=monitor.app), base_url="http://testserver") as client:
        yield client


@pytest.fixture
def rebuild_container(settings: Settings) -> Callable[[], Awaitable[UsageMonitorContainer]]:
    async def _rebuild() -> UsageMonitorContainer:
        return await build_test_container(settings, FakeUsageFetcher())

    return _rebuild
