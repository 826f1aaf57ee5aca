"""Principal resolution for requests authenticated by the identity provider."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials

from app.core.security import bearer_scheme, decode_token
from app.shared.exceptions import UnauthenticatedException


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller; the id is trusted as issued."""

    id: UUID


def principal_from_token(token: str) -> Principal:
    """Resolve principal from a bearer access token."""
    payload = decode_token(token)
    if payload.get("type", "access") != "access":
        raise UnauthenticatedException("Invalid access token")

    subject = payload.get("sub")
    if not subject:
        raise UnauthenticatedException("Token subject is missing")
    try:
        return Principal(id=UUID(str(subject)))
    except ValueError as exc:
        raise UnauthenticatedException("Token subject is not a valid user id") from exc


async def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal | None:
    """Return principal when a bearer token is present, None otherwise."""
    if credentials is None or not credentials.credentials:
        return None
    return principal_from_token(credentials.credentials)


async def get_current_principal(
    principal: Principal | None = Depends(get_optional_principal),
) -> Principal:
    """Resolve currently authenticated principal or fail."""
    if principal is None:
        raise UnauthenticatedException("Not authenticated")
    return principal
