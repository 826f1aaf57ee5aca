"""Security utilities for identity tokens."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from app.core.config import get_settings
from app.shared.exceptions import UnauthenticatedException

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(subject: str, expires_delta: timedelta | None = None, **claims: Any) -> str:
    """Create signed access token (used by local tooling and tests)."""
    payload: dict[str, Any] = {
        "sub": subject,
        "type": "access",
        "exp": datetime.now(UTC) + (expires_delta or timedelta(minutes=30)),
    }
    payload.update(claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate JWT token issued by the identity provider."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise UnauthenticatedException("Invalid token") from exc
