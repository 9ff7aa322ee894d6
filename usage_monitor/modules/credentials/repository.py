from __future__ import annotations

import asyncio
import errno
import logging
from pathlib import Path

from cryptography.fernet import InvalidToken
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usage_monitor.core.crypto import TokenEncryptor
from usage_monitor.db.models import ManualCredential
from usage_monitor.modules.credentials.errors import (
    CredentialDuplicateError,
    CredentialMalformedError,
    CredentialNotFoundError,
    CredentialUnexpectedError,
)
from usage_monitor.modules.credentials.models import ClaudeCodeCredentials

logger = logging.getLogger(__name__)

_MANUAL_CREDENTIAL_ID = 1


class ManualCredentialRepositoryConflictError(ValueError):
    pass


class ManualCredentialRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self) -> ManualCredential | None:
        result = await self._session.execute(
            select(ManualCredential).where(ManualCredential.id == _MANUAL_CREDENTIAL_ID)
        )
        return result.scalar_one_or_none()

    async def add(self, token_encrypted: bytes) -> ManualCredential:
        row = ManualCredential(id=_MANUAL_CREDENTIAL_ID, token_encrypted=token_encrypted)
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ManualCredentialRepositoryConflictError("Manual credential already exists") from exc
        return row

    async def delete(self) -> bool:
        result = await self._session.execute(
            delete(ManualCredential).where(ManualCredential.id == _MANUAL_CREDENTIAL_ID)
        )
        await self._session.commit()
        return bool(result.rowcount)


class ClaudeCodeCredentialFile:
    """Read-only view of the credentials file maintained by Claude Code."""

    def __init__(self, path: Path) -> None:
        self._path = path

    async def read(self) -> str:
        try:
            raw = await asyncio.to_thread(self._path.read_bytes)
        except FileNotFoundError as exc:
            logger.debug("Claude Code credentials not found path=%s", self._path)
            raise CredentialNotFoundError() from exc
        except OSError as exc:
            logger.error("Failed to read Claude Code credentials errno=%s", exc.errno)
            raise CredentialUnexpectedError(exc.errno or errno.EIO) from exc

        try:
            credentials = ClaudeCodeCredentials.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Invalid data format for Claude Code credentials")
            raise CredentialMalformedError() from exc
        return credentials.claude_ai_oauth.access_token


class SqlManualCredentialStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        encryptor: TokenEncryptor,
    ) -> None:
        self._session_factory = session_factory
        self._encryptor = encryptor

    async def read(self) -> str:
        try:
            async with self._session_factory() as session:
                row = await ManualCredentialRepository(session).get()
        except SQLAlchemyError as exc:
            raise CredentialUnexpectedError(type(exc).__name__) from exc
        if row is None:
            raise CredentialNotFoundError()
        try:
            return self._encryptor.decrypt(row.token_encrypted)
        except (InvalidToken, UnicodeDecodeError) as exc:
            raise CredentialMalformedError() from exc

    async def insert(self, token: str) -> None:
        encrypted = self._encryptor.encrypt(token)
        try:
            async with self._session_factory() as session:
                await ManualCredentialRepository(session).add(encrypted)
        except ManualCredentialRepositoryConflictError as exc:
            raise CredentialDuplicateError() from exc
        except SQLAlchemyError as exc:
            raise CredentialUnexpectedError(type(exc).__name__) from exc

    async def delete(self) -> bool:
        try:
            async with self._session_factory() as session:
                return await ManualCredentialRepository(session).delete()
        except SQLAlchemyError as exc:
            raise CredentialUnexpectedError(type(exc).__name__) from exc
