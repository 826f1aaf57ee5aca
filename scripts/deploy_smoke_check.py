"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import os
from datetime import date, timedelta
from uuid import uuid4

import httpx

BASE_URL = os.getenv("SMOKE_BASE_URL", "http://localhost:8000")
API_PREFIX = os.getenv("API_PREFIX", "/api/v1")


def request(
    client: httpx.Client,
    path: str,
    *,
    method: str = "GET",
    body: dict | None = None,
    expected: int = 200,
) -> httpx.Response:
    try:
        response = client.request(method, path, json=body)
    except httpx.HTTPError as exc:  # pragma: no cover - runtime smoke script
        raise RuntimeError(f"{method} {path} failed: {exc}") from exc

    if response.status_code != expected:
        raise RuntimeError(f"{method} {path} -> {response.status_code}, expected {expected}: {response.text}")
    return response


def main() -> None:
    with httpx.Client(base_url=BASE_URL, timeout=30, headers={"Accept": "application/json"}) as client:
        for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
            request(client, endpoint, expected=200)

        tomorrow = date.today() + timedelta(days=1)
        slots = request(
            client,
            f"{API_PREFIX}/lesson-booking",
            method="POST",
            body={"action": "getAvailableSlots", "payload": {"date": tomorrow.isoformat()}},
        ).json()
        if slots.get("success") is not True:
            raise RuntimeError(f"getAvailableSlots returned failure: {slots}")

        request(
            client,
            f"{API_PREFIX}/lesson-booking",
            method="POST",
            body={
                "action": "create",
                "payload": {
                    "studentId": str(uuid4()),
                    "scheduledAt": f"{tomorrow.isoformat()}T10:00:00+09:00",
                    "lessonType": "standard",
                },
            },
            expected=401,
        )

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
