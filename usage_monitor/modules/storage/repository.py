from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usage_monitor.db.models import KeyValueEntry


class BlobStorePort(Protocol):
    async def load(self, key: str) -> bytes | None: ...

    async def save(self, key: str, value: bytes) -> None: ...


class KeyValueRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, key: str) -> bytes | None:
        result = await self._session.execute(select(KeyValueEntry.value).where(KeyValueEntry.key == key))
        return result.scalar_one_or_none()

    async def put(self, key: str, value: bytes) -> None:
        existing = await self._session.get(KeyValueEntry, key)
        if existing:
            existing.value = value
        else:
            self._session.add(KeyValueEntry(key=key, value=value))
        await self._session.commit()


class SqlBlobStore:
    """Small key-value blob store backed by the ``kv_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, key: str) -> bytes | None:
        async with self._session_factory() as session:
            return await KeyValueRepository(session).get(key)

    async def save(self, key: str, value: bytes) -> None:
        async with self._session_factory() as session:
            await KeyValueRepository(session).put(key, value)

