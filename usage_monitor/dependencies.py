from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from usage_monitor.core.clients.http import HttpClient
from usage_monitor.core.clients.usage import UsageClient
from usage_monitor.core.config.settings import Settings
from usage_monitor.core.crypto import TokenEncryptor
from usage_monitor.db.session import create_engine, create_session_factory, init_db
from usage_monitor.modules.credentials.repository import ClaudeCodeCredentialFile, SqlManualCredentialStore
from usage_monitor.modules.credentials.service import CredentialResolver
from usage_monitor.modules.notifications.delivery import build_notification_delivery
from usage_monitor.modules.notifications.service import ThresholdNotifier
from usage_monitor.modules.storage.repository import SqlBlobStore
from usage_monitor.modules.usage.service import UsageStateCache


@dataclass(slots=True)
class UsageMonitorContainer:
    settings: Settings
    engine: AsyncEngine
    http_client: HttpClient
    resolver: CredentialResolver
    notifier: ThresholdNotifier
    cache: UsageStateCache

    async def aclose(self) -> None:
        await self.cache.stop()
        await self.http_client.close()
        await self.engine.dispose()


async def build_container(settings: Settings) -> UsageMonitorContainer:
    engine = create_engine(settings.database_url)
    await init_db(engine)
    session_factory = create_session_factory(engine)
    http_client = HttpClient()

    store = SqlBlobStore(session_factory)
    resolver = CredentialResolver(
        ClaudeCodeCredentialFile(settings.primary_credentials_path),
        SqlManualCredentialStore(session_factory, TokenEncryptor(key_file=settings.encryption_key_file)),
    )
    notifier = await ThresholdNotifier.create(build_notification_delivery(settings, http_client), store)
    cache = await UsageStateCache.create(
        resolver,
        UsageClient(http_client, settings=settings),
        notifier,
        store,
        refresh_interval_seconds=settings.refresh_interval_seconds,
    )
    return UsageMonitorContainer(
        settings=settings,
        engine=engine,
        http_client=http_client,
        resolver=resolver,
        notifier=notifier,
        cache=cache,
    )


@dataclass(slots=True)
class MonitorContext:
    cache: UsageStateCache
    resolver: CredentialResolver
    settings: Settings


def get_monitor_context(request: Request) -> MonitorContext:
    container: UsageMonitorContainer = request.app.state.container
    return MonitorContext(cache=container.cache, resolver=container.resolver, settings=container.settings)
