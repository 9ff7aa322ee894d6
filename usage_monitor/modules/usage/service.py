"""Single-writer owner of the current usage state.

``UsageStateCache`` serializes every mutation behind one ``asyncio.Lock`` and
publishes a new immutable ``ServiceState`` after each one. Subscribers get the
current snapshot first and then every later publication in order. Subscriptions
are held weakly, so one that is dropped without ``close()`` is forgotten.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol

from usage_monitor.core.usage.errors import NoCredentialError, UsageApiError
from usage_monitor.core.usage.mapping import map_response_to_limits
from usage_monitor.core.usage.models import TokenSource, UsageLimit, UsageResponse
from usage_monitor.core.utils.time import utcnow
from usage_monitor.modules.credentials.service import CredentialResolver
from usage_monitor.modules.notifications.service import ThresholdNotifier
from usage_monitor.modules.storage.repository import BlobStorePort
from usage_monitor.modules.usage.scheduler import DEFAULT_REFRESH_INTERVAL_SECONDS, RefreshScheduler

logger = logging.getLogger(__name__)

PREFERRED_SOURCE_KEY = "preferred_source"


class UsageFetcherPort(Protocol):
    async def fetch_usage(self, token: str) -> UsageResponse: ...

    async def validate_token(self, token: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class ServiceState:
    usage_limits: tuple[UsageLimit, ...] = ()
    last_updated: datetime | None = None
    error: UsageApiError | None = None
    active_source: TokenSource | None = None
    preferred_source: TokenSource = TokenSource.PRIMARY

    @property
    def has_valid_credential(self) -> bool:
        return self.active_source is not None


class StateSubscription:
    def __init__(self, cache: UsageStateCache, subscription_id: int) -> None:
        self._cache = cache
        self._id = subscription_id
        self._queue: asyncio.Queue[ServiceState | None] = asyncio.Queue()
        self._closed = False

    @property
    def id(self) -> int:
        return self._id

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, state: ServiceState) -> None:
        if not self._closed:
            self._queue.put_nowait(state)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        self._cache._unsubscribe(self._id)

    def __aiter__(self) -> StateSubscription:
        return self

    async def __anext__(self) -> ServiceState:
        state = await self._queue.get()
        if state is None:
            raise StopAsyncIteration
        return state

    async def __aenter__(self) -> StateSubscription:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class UsageStateCache:
    def __init__(
        self,
        resolver: CredentialResolver,
        fetcher: UsageFetcherPort,
        notifier: ThresholdNotifier,
        store: BlobStorePort,
        *,
        preferred_source: TokenSource = TokenSource.PRIMARY,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._resolver = resolver
        self._fetcher = fetcher
        self._notifier = notifier
        self._store = store
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = ServiceState(preferred_source=preferred_source)
        self._subscribers: weakref.WeakValueDictionary[int, StateSubscription] = weakref.WeakValueDictionary()
        self._subscription_ids = itertools.count(1)
        self._scheduler = RefreshScheduler(self.refresh, refresh_interval_seconds)

    @classmethod
    async def create(
        cls,
        resolver: CredentialResolver,
        fetcher: UsageFetcherPort,
        notifier: ThresholdNotifier,
        store: BlobStorePort,
        *,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> UsageStateCache:
        preferred = await load_preferred_source(store)
        return cls(
            resolver,
            fetcher,
            notifier,
            store,
            preferred_source=preferred,
            refresh_interval_seconds=refresh_interval_seconds,
            clock=clock,
        )

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    def subscribe(self) -> StateSubscription:
        subscription = StateSubscription(self, next(self._subscription_ids))
        self._subscribers[subscription.id] = subscription
        subscription.push(self._state)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def start(self) -> None:
        logger.info("Starting usage monitor")
        await self._notifier.request_permission()
        async with self._lock:
            self._state = await self._with_availability(self._state)
            await self._refresh_locked()
        self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.aclose()
        for subscription in list(self._subscribers.values()):
            subscription.close()

    async def refresh(self) -> None:
        async with self._lock:
            await self._refresh_locked()

    async def refresh_if_stale(self, max_age_seconds: float) -> bool:
        async with self._lock:
            last_updated = self._state.last_updated
            if last_updated is not None and self._clock() - last_updated <= timedelta(seconds=max_age_seconds):
                return False
            await self._refresh_locked()
            return True

    async def set_preferred_source(self, source: TokenSource) -> None:
        async with self._lock:
            try:
                await self._store.save(PREFERRED_SOURCE_KEY, source.value.encode("utf-8"))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to persist preferred source error=%s", exc)
            self._state = replace(self._state, preferred_source=source)
            await self._refresh_locked()

    async def validate_credential(self, token: str) -> bool:
        async with self._lock:
            return await self._fetcher.validate_token(token)

    async def save_credential(self, token: str) -> None:
        async with self._lock:
            await self._resolver.save(token)
            self._state = await self._with_availability(self._state)
            await self._refresh_locked()

    async def clear_credential(self) -> None:
        async with self._lock:
            await self._resolver.clear()
            state = await self._with_availability(self._state)
            self._publish(replace(state, usage_limits=(), last_updated=None))

    async def reset_notifications(self) -> None:
        async with self._lock:
            await self._notifier.reset_all()
        logger.info("Notification state reset")

    async def is_credential_available(self, source: TokenSource) -> bool:
        return await self._resolver.is_available(source)

    async def _refresh_locked(self) -> None:
        state = replace(self._state, error=None)
        credential = await self._resolver.resolve(state.preferred_source)
        if credential is None:
            logger.warning("No token available for refresh")
            self._publish(replace(state, error=NoCredentialError(), active_source=None))
            return

        state = replace(state, active_source=credential.source)
        try:
            response = await self._fetcher.fetch_usage(credential.token)
        except UsageApiError as exc:
            logger.error("Failed to refresh usage data error=%s", exc)
            self._publish(replace(state, error=exc))
            return

        limits = tuple(map_response_to_limits(response))
        state = replace(state, usage_limits=limits, last_updated=self._clock())
        logger.debug("Refreshed usage data limit_count=%s", len(limits))
        await self._notifier.evaluate(limits)
        self._publish(state)

    async def _with_availability(self, state: ServiceState) -> ServiceState:
        credential = await self._resolver.resolve(state.preferred_source)
        return replace(state, active_source=credential.source if credential else None)

    def _publish(self, state: ServiceState) -> None:
        self._state = state
        for subscription in list(self._subscribers.values()):
            subscription.push(state)

    def _unsubscribe(self, subscription_id: int) -> None:
        self._subscribers.pop(subscription_id, None)


async def load_preferred_source(store: BlobStorePort) -> TokenSource:
    try:
        raw = await store.load(PREFERRED_SOURCE_KEY)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to load preferred source error=%s", exc)
        return TokenSource.PRIMARY
    if raw is None:
        return TokenSource.PRIMARY
    try:
        return TokenSource(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        logger.warning("Ignoring unknown preferred source value")
        return TokenSource.PRIMARY
