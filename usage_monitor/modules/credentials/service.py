from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from usage_monitor.core.usage.models import TokenSource
from usage_monitor.modules.credentials.errors import CredentialAccessError

logger = logging.getLogger(__name__)


class PrimaryCredentialStorePort(Protocol):
    async def read(self) -> str: ...


class ManualCredentialStorePort(Protocol):
    async def read(self) -> str: ...

    async def insert(self, token: str) -> None: ...

    async def delete(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class ResolvedCredential:
    token: str
    source: TokenSource


class CredentialResolver:
    def __init__(
        self,
        primary_store: PrimaryCredentialStorePort,
        manual_store: ManualCredentialStorePort,
    ) -> None:
        self._primary_store = primary_store
        self._manual_store = manual_store

    async def read(self, source: TokenSource) -> str:
        """Read the secret for ``source``, raising the classified store error on failure."""
        if source is TokenSource.PRIMARY:
            return await self._primary_store.read()
        return await self._manual_store.read()

    async def resolve(self, preferred: TokenSource) -> ResolvedCredential | None:
        try:
            token = await self.read(preferred)
        except CredentialAccessError as exc:
            logger.debug("No credential for source=%s reason=%s", preferred.value, exc.code)
            return None
        return ResolvedCredential(token=token, source=preferred)

    async def is_available(self, source: TokenSource) -> bool:
        return await self.resolve(source) is not None

    async def save(self, token: str) -> None:
        try:
            await self._manual_store.delete()
        except CredentialAccessError as exc:
            logger.warning("Failed to remove previous manual token reason=%s", exc.code)
        await self._manual_store.insert(token)
        logger.info("Saved manual token")

    async def clear(self) -> None:
        removed = await self._manual_store.delete()
        if removed:
            logger.info("Cleared manual token")
