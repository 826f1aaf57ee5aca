"""Google service account access tokens."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from fastapi.concurrency import run_in_threadpool
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from app.shared.exceptions import CalendarException

CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"


class ServiceAccountTokenProvider:
    """Hand out access tokens from service account credentials.

    google-auth signs the assertion, tracks expiry and refreshes. Refresh is
    blocking, so it runs in the threadpool and is bounded by ``timeout``.
    """

    def __init__(
        self,
        credentials: service_account.Credentials,
        *,
        timeout: float = 10.0,
        request_factory: Callable[[], Any] = Request,
    ) -> None:
        self.credentials = credentials
        self.timeout = timeout
        self.request_factory = request_factory
        self._lock = asyncio.Lock()

    @classmethod
    def from_service_account_info(
        cls,
        info: dict[str, Any],
        *,
        timeout: float = 10.0,
        request_factory: Callable[[], Any] = Request,
    ) -> "ServiceAccountTokenProvider":
        credentials = service_account.Credentials.from_service_account_info(info, scopes=[CALENDAR_SCOPE])
        return cls(credentials, timeout=timeout, request_factory=request_factory)

    @classmethod
    def from_json(cls, raw_json: str, *, timeout: float = 10.0) -> "ServiceAccountTokenProvider":
        return cls.from_service_account_info(json.loads(raw_json), timeout=timeout)

    async def get_access_token(self) -> str:
        async with self._lock:
            if not self.credentials.valid:
                await self._refresh()
            return self.credentials.token

    async def _refresh(self) -> None:
        try:
            await asyncio.wait_for(
                run_in_threadpool(self.credentials.refresh, self.request_factory()),
                timeout=self.timeout,
            )
        except TimeoutError as exc:
            raise CalendarException("Google token exchange timed out") from exc
        except GoogleAuthError as exc:
            raise CalendarException(f"Google token exchange failed: {exc}") from exc
