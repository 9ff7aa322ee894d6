from __future__ import annotations

import asyncio
import logging

import aiohttp
from pydantic import ValidationError
from yarl import URL

from usage_monitor.core.clients.http import HttpClient
from usage_monitor.core.config.settings import Settings, get_settings
from usage_monitor.core.usage.errors import (
    DecodingError,
    HttpStatusError,
    InvalidURLError,
    NetworkError,
    UsageApiError,
)
from usage_monitor.core.usage.models import UsageResponse

logger = logging.getLogger(__name__)


class UsageClient:
    def __init__(
        self,
        http_client: HttpClient,
        *,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._http_client = http_client
        self._settings = settings or get_settings()
        self._session = session

    async def fetch_usage(self, token: str) -> UsageResponse:
        url = self._usage_url()
        headers = {
            "Authorization": f"Bearer {token}",
            "anthropic-beta": self._settings.anthropic_beta,
            "User-Agent": self._settings.user_agent,
            "Accept": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self._settings.usage_request_timeout_seconds)
        client_session = self._session or self._http_client.session

        logger.debug("Fetching usage data")
        try:
            async with client_session.get(str(url), headers=headers, timeout=timeout) as resp:
                body = await resp.read()
                if not 200 <= resp.status < 300:
                    logger.warning("Usage request failed status=%s", resp.status)
                    message = body.decode("utf-8", errors="replace").strip()
                    raise HttpStatusError(resp.status, message or None)
        except UsageApiError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Usage request network error error=%s", exc)
            raise NetworkError(exc) from exc

        try:
            payload = UsageResponse.model_validate_json(body)
        except ValidationError as exc:
            logger.error("Usage response invalid error_count=%s", exc.error_count())
            raise DecodingError(exc) from exc
        logger.debug("Fetched usage data")
        return payload

    async def validate_token(self, token: str) -> bool:
        try:
            await self.fetch_usage(token)
        except UsageApiError:
            return False
        return True

    def _usage_url(self) -> URL:
        raw = f"{self._settings.usage_base_url.rstrip('/')}{self._settings.usage_path}"
        try:
            url = URL(raw)
        except ValueError as exc:
            raise InvalidURLError(raw) from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidURLError(raw)
        return url
