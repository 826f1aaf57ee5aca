from __future__ import annotations

import json

import httpx
import pytest

from app.core.config import Settings
from app.modules.notifications.channel import (
    LineNotificationChannel,
    LoggingNotificationChannel,
    NotificationDeliveryError,
    build_notification_channel,
)

PUSH_URL = "https://line.test/v2/bot/message/push"


def make_channel(handler) -> LineNotificationChannel:
    return LineNotificationChannel(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        access_token="line-token",
        push_url=PUSH_URL,
    )


@pytest.mark.asyncio
async def test_line_push_sends_text_message() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={})

    await make_channel(handler).send_text("U1234567890", "Your lesson is booked")

    request = captured[0]
    assert str(request.url) == PUSH_URL
    assert request.headers["Authorization"] == "Bearer line-token"
    assert json.loads(request.content) == {
        "to": "U1234567890",
        "messages": [{"type": "text", "text": "Your lesson is booked"}],
    }


@pytest.mark.asyncio
async def test_line_rejection_raises_delivery_error() -> None:
    channel = make_channel(lambda request: httpx.Response(400, json={"message": "Invalid reply token"}))

    with pytest.raises(NotificationDeliveryError):
        await channel.send_text("U1234567890", "hello")


@pytest.mark.asyncio
async def test_line_transport_failure_raises_delivery_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NotificationDeliveryError):
        await make_channel(handler).send_text("U1234567890", "hello")


@pytest.mark.asyncio
async def test_channel_falls_back_to_logging_without_token(caplog: pytest.LogCaptureFixture) -> None:
    async with httpx.AsyncClient() as client:
        channel = build_notification_channel(Settings(_env_file=None, line_channel_access_token=None), client)
        configured = build_notification_channel(Settings(_env_file=None, line_channel_access_token="t"), client)

    assert isinstance(channel, LoggingNotificationChannel)
    assert isinstance(configured, LineNotificationChannel)

    caplog.set_level("INFO")
    await channel.send_text("U1", "hello")
    assert "Notification to U1: hello" in caplog.text
