from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs
from uuid import uuid4

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from app.core.config import Settings
from app.core.enums import LessonTypeEnum
from app.modules.calendar.auth import CALENDAR_SCOPE, ServiceAccountTokenProvider
from app.modules.calendar.gateway import (
    GoogleCalendarGateway,
    UnconfiguredCalendarGateway,
    build_calendar_gateway,
)
from app.modules.calendar.schemas import CalendarEventCreate
from app.shared.exceptions import CalendarException

API_URL = "https://calendar.test/v3"
TOKEN_URI = "https://oauth2.test/token"


class StaticTokenProvider:
    async def get_access_token(self) -> str:
        return "test-token"


def make_details() -> CalendarEventCreate:
    start = datetime(2026, 10, 22, 1, 0, tzinfo=UTC)
    return CalendarEventCreate(
        booking_id=uuid4(),
        student_name="Hanako Sato",
        student_email="hanako@example.jp",
        lesson_type=LessonTypeEnum.STANDARD,
        duration=50,
        start_time=start,
        end_time=start + timedelta(minutes=50),
    )


def make_gateway(handler) -> GoogleCalendarGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleCalendarGateway(
        client,
        StaticTokenProvider(),
        calendar_id="lessons@group.calendar.google.com",
        api_url=API_URL,
        timezone="Asia/Tokyo",
        brand_name="Prokaiwa",
    )


@pytest.fixture(scope="module")
def private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.mark.asyncio
async def test_create_requests_meet_link_keyed_by_booking_id() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "evt-1", "hangoutLink": "https://meet.google.com/abc-defg-hij"})

    details = make_details()
    ref = await make_gateway(handler).create(details)

    assert ref.event_id == "evt-1"
    assert ref.join_link == "https://meet.google.com/abc-defg-hij"

    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/v3/calendars/lessons@group.calendar.google.com/events"
    assert request.url.params["conferenceDataVersion"] == "1"
    assert request.headers["Authorization"] == "Bearer test-token"

    body = json.loads(request.content)
    assert body["summary"] == "Prokaiwa Lesson - Hanako Sato"
    assert body["conferenceData"]["createRequest"]["requestId"] == str(details.booking_id)
    assert body["attendees"] == [{"email": "hanako@example.jp"}]
    assert body["start"]["timeZone"] == "Asia/Tokyo"
    assert "Lesson Type: standard" in body["description"]


@pytest.mark.asyncio
async def test_create_without_conference_link_returns_none_link() -> None:
    gateway = make_gateway(lambda request: httpx.Response(200, json={"id": "evt-2"}))

    ref = await gateway.create(make_details())

    assert ref.join_link is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [404, 410])
async def test_delete_of_missing_event_counts_as_deleted(status_code: int) -> None:
    gateway = make_gateway(lambda request: httpx.Response(status_code))

    assert await gateway.delete("evt-gone") is True


@pytest.mark.asyncio
async def test_api_errors_are_raised_as_calendar_exceptions() -> None:
    gateway = make_gateway(lambda request: httpx.Response(403, json={"error": "forbidden"}))

    with pytest.raises(CalendarException):
        await gateway.create(make_details())
    with pytest.raises(CalendarException):
        await gateway.delete("evt-1")


@pytest.mark.asyncio
async def test_transport_errors_are_raised_as_calendar_exceptions() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(CalendarException):
        await make_gateway(handler).create(make_details())


@pytest.mark.asyncio
async def test_update_patches_event() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        return httpx.Response(200, json={"id": "evt-1", **json.loads(request.content)})

    result = await make_gateway(handler).update("evt-1", {"summary": "Moved"})

    assert result["summary"] == "Moved"


@pytest.mark.asyncio
async def test_unconfigured_gateway_fails_every_call() -> None:
    settings = Settings(_env_file=None, google_calendar_id=None, google_service_account_json=None)
    async with httpx.AsyncClient() as client:
        gateway = build_calendar_gateway(settings, client)

    assert isinstance(gateway, UnconfiguredCalendarGateway)
    with pytest.raises(CalendarException):
        await gateway.create(make_details())


@dataclass
class TokenEndpointResponse:
    status: int
    data: bytes
    headers: dict[str, str] = field(default_factory=dict)


class FakeTokenEndpoint:
    """Stands in for ``google.auth.transport.requests.Request``."""

    def __init__(self, status: int = 200, error: str = "invalid_grant") -> None:
        self.status = status
        self.error = error
        self.calls: list[dict[str, str]] = []

    def __call__(self, url: str, method: str = "GET", body: bytes | None = None, headers=None, **kwargs):
        form = {key: values[0] for key, values in parse_qs((body or b"").decode("utf-8")).items()}
        self.calls.append({"url": url, "method": method, **form})
        if self.status != 200:
            payload = {"error": self.error, "error_description": "Invalid JWT Signature."}
        else:
            payload = {"access_token": f"token-{len(self.calls)}", "expires_in": 3600}
        return TokenEndpointResponse(self.status, json.dumps(payload).encode("utf-8"))


def service_account_info(private_key_pem: str) -> dict[str, str]:
    return {
        "type": "service_account",
        "client_email": "booking@project.iam.gserviceaccount.com",
        "private_key": private_key_pem,
        "token_uri": TOKEN_URI,
    }


@pytest.mark.asyncio
async def test_service_account_token_is_exchanged_once_and_cached(private_key_pem: str) -> None:
    endpoint = FakeTokenEndpoint()
    provider = ServiceAccountTokenProvider.from_service_account_info(
        service_account_info(private_key_pem),
        request_factory=lambda: endpoint,
    )

    assert await provider.get_access_token() == "token-1"
    assert await provider.get_access_token() == "token-1"
    assert len(endpoint.calls) == 1

    exchange = endpoint.calls[0]
    assert exchange["url"] == TOKEN_URI
    assert exchange["method"] == "POST"
    assert exchange["grant_type"] == "urn:ietf:params:oauth:grant-type:jwt-bearer"
    claims = jwt.get_unverified_claims(exchange["assertion"])
    assert claims["iss"] == "booking@project.iam.gserviceaccount.com"
    assert claims["aud"] == TOKEN_URI
    assert claims["scope"] == CALENDAR_SCOPE

    provider.credentials.expiry = datetime.now(UTC).replace(tzinfo=None) - timedelta(minutes=1)
    assert await provider.get_access_token() == "token-2"
    assert len(endpoint.calls) == 2


@pytest.mark.asyncio
async def test_failed_token_exchange_raises_calendar_exception(private_key_pem: str) -> None:
    endpoint = FakeTokenEndpoint(status=400)
    provider = ServiceAccountTokenProvider.from_service_account_info(
        service_account_info(private_key_pem),
        request_factory=lambda: endpoint,
    )

    with pytest.raises(CalendarException):
        await provider.get_access_token()
    assert len(endpoint.calls) == 1


def test_service_account_json_must_carry_credentials() -> None:
    with pytest.raises(ValueError):
        ServiceAccountTokenProvider.from_service_account_info({"client_email": "x@y"})


def test_service_account_json_is_loaded_with_calendar_scope(private_key_pem: str) -> None:
    provider = ServiceAccountTokenProvider.from_json(
        json.dumps(service_account_info(private_key_pem)),
        timeout=3.0,
    )

    assert provider.credentials.service_account_email == "booking@project.iam.gserviceaccount.com"
    assert provider.credentials.scopes == [CALENDAR_SCOPE]
    assert provider.timeout == 3.0
    assert provider.credentials.valid is False
