from __future__ import annotations

import asyncio
import logging
import shutil
from typing import Protocol

import aiohttp

from usage_monitor.core.clients.http import HttpClient
from usage_monitor.core.config.settings import Settings
from usage_monitor.core.usage.models import UsageThreshold
from usage_monitor.modules.notifications.renderer import NotificationMessage

logger = logging.getLogger(__name__)

_APP_NAME = "Usage Monitor"
_WEBHOOK_TIMEOUT_SECONDS = 10.0


class NotificationDeliveryPort(Protocol):
    async def request_permission(self) -> bool: ...

    async def send(self, message: NotificationMessage) -> bool: ...


class LoggingNotificationDelivery:
    async def request_permission(self) -> bool:
        return True

    async def send(self, message: NotificationMessage) -> bool:
        level = logging.WARNING if message.severity is UsageThreshold.CRITICAL else logging.INFO
        logger.log(level, "%s: %s", message.title, message.body.replace("\n", " "))
        return True


class DesktopNotificationDelivery:
    """Deliver through a ``notify-send`` compatible command."""

    def __init__(self, command: str = "notify-send") -> None:
        self._command = command

    async def request_permission(self) -> bool:
        available = shutil.which(self._command) is not None
        if not available:
            logger.warning("Notification command not found command=%s", self._command)
        return available

    async def send(self, message: NotificationMessage) -> bool:
        urgency = "critical" if message.severity is UsageThreshold.CRITICAL else "normal"
        try:
            process = await asyncio.create_subprocess_exec(
                self._command,
                f"--urgency={urgency}",
                f"--app-name={_APP_NAME}",
                message.title,
                message.body,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await process.wait()
        except OSError as exc:
            logger.warning("Failed to run notification command error=%s", exc)
            return False
        return returncode == 0


class WebhookNotificationDelivery:
    def __init__(self, http_client: HttpClient, url: str) -> None:
        self._http_client = http_client
        self._url = url

    async def request_permission(self) -> bool:
        return True

    async def send(self, message: NotificationMessage) -> bool:
        payload = {
            "id": message.identifier,
            "limit": message.limit_id,
            "severity": message.severity.name.lower(),
            "threshold": message.severity.value,
            "title": message.title,
            "body": message.body,
        }
        timeout = aiohttp.ClientTimeout(total=_WEBHOOK_TIMEOUT_SECONDS)
        try:
            async with self._http_client.session.post(self._url, json=payload, timeout=timeout) as resp:
                if resp.status >= 400:
                    logger.warning("Notification webhook failed status=%s", resp.status)
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Notification webhook error error=%s", exc)
            return False
        return True


def build_notification_delivery(settings: Settings, http_client: HttpClient) -> NotificationDeliveryPort:
    if settings.notification_backend == "desktop":
        return DesktopNotificationDelivery(settings.notification_command)
    if settings.notification_backend == "webhook":
        if not settings.notification_webhook_url:
            raise ValueError("notification_webhook_url is required for the webhook backend")
        return WebhookNotificationDelivery(http_client, settings.notification_webhook_url)
    return LoggingNotificationDelivery()
