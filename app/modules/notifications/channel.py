"""Outbound text notification channels."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from fastapi import Request

from app.core.config import Settings

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """Raised when a channel rejects a message."""


class NotificationChannel(Protocol):
    async def send_text(self, recipient: str, text: str) -> None:
        """Deliver a plain text message to recipient."""


class LineNotificationChannel:
    """LINE Messaging API push channel."""

    def __init__(self, http_client: httpx.AsyncClient, *, access_token: str, push_url: str) -> None:
        self.http_client = http_client
        self.access_token = access_token
        self.push_url = push_url

    async def send_text(self, recipient: str, text: str) -> None:
        try:
            response = await self.http_client.post(
                self.push_url,
                headers={"Authorization": f"Bearer {self.access_token}"},
                json={"to": recipient, "messages": [{"type": "text", "text": text}]},
            )
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"LINE push failed: {exc}") from exc
        if not response.is_success:
            raise NotificationDeliveryError(f"LINE API error ({response.status_code}): {response.text}")


class LoggingNotificationChannel:
    """Development channel that only logs messages."""

    async def send_text(self, recipient: str, text: str) -> None:
        logger.info("Notification to %s: %s", recipient, text)


def build_notification_channel(settings: Settings, http_client: httpx.AsyncClient) -> NotificationChannel:
    """Build notification channel from settings."""
    if not settings.line_channel_access_token:
        return LoggingNotificationChannel()
    return LineNotificationChannel(
        http_client,
        access_token=settings.line_channel_access_token,
        push_url=settings.line_push_api_url,
    )


def get_notification_channel(request: Request) -> NotificationChannel:
    """Dependency provider for the process-wide notification channel."""
    return request.app.state.notification_channel
