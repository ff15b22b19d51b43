"""Bearer-token verification delegated to Supabase Auth."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
from fastapi import HTTPException, Request

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class AuthenticationError(RuntimeError):
    """Raised when a bearer token cannot be resolved to a user."""


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class SupabaseAuthenticator:
    """Resolve access tokens through ``GET {SUPABASE_URL}/auth/v1/user``."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_url = f"{base_url.rstrip('/')}/auth/v1/user"
        self._anon_key = anon_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SupabaseAuthenticator | None":
        if settings.supabase_url is None or settings.supabase_anon_key is None:
            return None
        anon_key = settings.supabase_anon_key.get_secret_value()
        if not anon_key:
            return None
        return cls(
            str(settings.supabase_url),
            anon_key,
            timeout=settings.auth_timeout_seconds,
        )

    async def verify(self, token: str) -> AuthenticatedUser:
        headers = {
            "Authorization": f"Bearer {token}",
            "apikey": self._anon_key,
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.get(self._user_url, headers=headers)
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Auth service unreachable: {exc}") from exc

        if resp.status_code != 200:
            logger.debug("Supabase rejected token with status %s", resp.status_code)
            raise AuthenticationError("Invalid or expired token")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthenticationError("Malformed auth response") from exc
        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            raise AuthenticationError("Invalid or expired token")
        return AuthenticatedUser(id=str(user_id), email=payload.get("email"), raw=payload)


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail={"error": "Missing or invalid authorization header"},
        )
    token = header[len("Bearer ") :].strip()
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"error": "Missing or invalid authorization header"},
        )
    return token


async def require_user(request: Request) -> AuthenticatedUser:
    """FastAPI dependency guarding every TTS route."""

    authenticator: SupabaseAuthenticator | None = getattr(
        request.app.state, "authenticator", None
    )
    if authenticator is None:
        logger.error("Supabase auth not configured")
        raise HTTPException(
            status_code=503, detail="Authentication is not configured on server"
        )

    token = _bearer_token(request)
    try:
        return await authenticator.verify(token)
    except AuthenticationError as exc:
        logger.info("Authentication failed: %s", exc)
        raise HTTPException(
            status_code=401, detail={"error": "Invalid or expired token"}
        ) from exc


__all__ = [
    "AuthenticatedUser",
    "AuthenticationError",
    "SupabaseAuthenticator",
    "require_user",
]
