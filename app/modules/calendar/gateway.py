"""Calendar event gateway over the Google Calendar API."""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from fastapi import Request

from app.core.config import Settings
from app.modules.calendar.auth import ServiceAccountTokenProvider
from app.modules.calendar.schemas import CalendarEventCreate, CalendarEventRef
from app.shared.exceptions import CalendarException

logger = logging.getLogger(__name__)


class AccessTokenProvider(Protocol):
    async def get_access_token(self) -> str:
        """Return bearer token for calendar API."""


class CalendarGateway(Protocol):
    """Create, update and delete lesson events."""

    async def create(self, details: CalendarEventCreate) -> CalendarEventRef:
        """Create event with a conferencing link."""

    async def update(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Patch event fields."""

    async def delete(self, event_id: str) -> bool:
        """Delete event; an already removed event counts as deleted."""


class GoogleCalendarGateway:
    """Google Calendar implementation with Meet conferencing.

    Failures are raised as ``CalendarException`` and never retried here.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_provider: AccessTokenProvider,
        *,
        calendar_id: str,
        api_url: str,
        timezone: str,
        brand_name: str,
    ) -> None:
        self.http_client = http_client
        self.token_provider = token_provider
        self.calendar_id = calendar_id
        self.api_url = api_url.rstrip("/")
        self.timezone = timezone
        self.brand_name = brand_name

    def _events_url(self, event_id: str | None = None) -> str:
        url = f"{self.api_url}/calendars/{quote(self.calendar_id, safe='')}/events"
        if event_id is not None:
            url = f"{url}/{quote(event_id, safe='')}"
        return url

    def _event_body(self, details: CalendarEventCreate) -> dict[str, Any]:
        return {
            "summary": f"{self.brand_name} Lesson - {details.student_name}",
            "description": (
                f"Video lesson with {details.student_name}\n\n"
                f"Lesson Type: {details.lesson_type}\n"
                f"Duration: {details.duration} minutes"
            ),
            "start": {"dateTime": details.start_time.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": details.end_time.isoformat(), "timeZone": self.timezone},
            "conferenceData": {
                "createRequest": {
                    "requestId": str(details.booking_id),
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            },
            "attendees": [{"email": details.student_email}],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        token = await self.token_provider.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            return await self.http_client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise CalendarException(f"Google Calendar request failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        raise CalendarException(f"Google Calendar API error ({response.status_code}): {response.text}")

    async def create(self, details: CalendarEventCreate) -> CalendarEventRef:
        response = await self._request(
            "POST",
            self._events_url(),
            params={"conferenceDataVersion": 1},
            json=self._event_body(details),
        )
        self._raise_for_status(response)
        payload = response.json()
        return CalendarEventRef(event_id=payload["id"], join_link=payload.get("hangoutLink"))

    async def update(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("PATCH", self._events_url(event_id), json=changes)
        self._raise_for_status(response)
        return response.json()

    async def delete(self, event_id: str) -> bool:
        response = await self._request("DELETE", self._events_url(event_id))
        if response.status_code in (404, 410):
            logger.info("Calendar event %s already deleted", event_id)
            return True
        self._raise_for_status(response)
        return True


class UnconfiguredCalendarGateway:
    """Gateway used when no calendar credentials are configured."""

    async def create(self, details: CalendarEventCreate) -> CalendarEventRef:
        raise CalendarException("Calendar integration is not configured")

    async def update(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        raise CalendarException("Calendar integration is not configured")

    async def delete(self, event_id: str) -> bool:
        raise CalendarException("Calendar integration is not configured")


def build_calendar_gateway(settings: Settings, http_client: httpx.AsyncClient) -> CalendarGateway:
    """Build calendar gateway from settings."""
    if not settings.google_calendar_id or not settings.google_service_account_json:
        logger.warning("Google Calendar is not configured; lesson creation will fail")
        return UnconfiguredCalendarGateway()

    token_provider = ServiceAccountTokenProvider.from_json(
        settings.google_service_account_json,
        timeout=settings.calendar_timeout_seconds,
    )
    return GoogleCalendarGateway(
        http_client,
        token_provider,
        calendar_id=settings.google_calendar_id,
        api_url=settings.google_calendar_api_url,
        timezone=settings.booking_timezone,
        brand_name=settings.lesson_brand_name,
    )


def get_calendar_gateway(request: Request) -> CalendarGateway:
    """Dependency provider for the process-wide calendar gateway."""
    return request.app.state.calendar_gateway
