"""Bearer token authentication against the identity provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable

import httpx
from fastapi import Depends, Request

from .config import Settings
from .errors import AppError, AuthConfigError, UnauthorizedError

logger = logging.getLogger(__name__)

# Fragments of identity provider errors that point at our own configuration
# rather than at the caller's token.
CONFIG_ERROR_MARKERS = (
    "API key",
    "API_KEY",
    "credential",
    "CONFIGURATION_NOT_FOUND",
    "PERMISSION_DENIED",
    "PROJECT_NOT_FOUND",
)


@dataclass(slots=True)
class AuthenticatedUser:
    uid: str
    email: str | None = None
    name: str | None = None
    picture: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class _CachedUser:
    user: AuthenticatedUser
    stored_at: float


class TokenCache:
    """Short-lived map of verified tokens to users.

    Expired entries are dropped on read. Once the map grows past
    ``max_entries`` a write sweeps expired entries and then evicts the oldest
    until the map is back at its limit.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 1_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _CachedUser] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, token: str) -> AuthenticatedUser | None:
        entry = self._entries.get(token)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self._ttl:
            self._entries.pop(token, None)
            return None
        return entry.user

    def set(self, token: str, user: AuthenticatedUser) -> None:
        if self._ttl <= 0:
            return
        self._entries.pop(token, None)
        self._entries[token] = _CachedUser(user, self._clock())
        if len(self._entries) > self._max_entries:
            self._sweep()

    def _sweep(self) -> None:
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items() if now - entry.stored_at > self._ttl
        ]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self._max_entries:
            del self._entries[next(iter(self._entries))]


def is_config_error(message: str) -> bool:
    return any(marker in message for marker in CONFIG_ERROR_MARKERS)


class IdentityVerifier:
    """Verify ID tokens with the Identity Toolkit ``accounts:lookup`` call."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._api_key = settings.identity_api_key
        self._lookup_url = str(settings.identity_lookup_url)
        self._client = http_client

    async def verify(self, token: str) -> AuthenticatedUser:
        if not self._api_key:
            raise AuthConfigError("Identity provider API key is not configured")

        try:
            response = await self._client.post(
                self._lookup_url,
                params={"key": self._api_key},
                json={"idToken": token},
            )
        except httpx.HTTPError as exc:
            logger.error("Identity provider request failed: %s", exc)
            raise AuthConfigError("Identity provider unreachable") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            error = payload.get("error") if isinstance(payload, dict) else None
            message = str(error.get("message", "")) if isinstance(error, dict) else response.text
            logger.warning(
                "Token verification failed: status=%s reason=%s", response.status_code, message
            )
            if is_config_error(message):
                raise AuthConfigError()
            raise UnauthorizedError()

        users = payload.get("users") if isinstance(payload, dict) else None
        if not users or not isinstance(users[0], dict) or not users[0].get("localId"):
            raise UnauthorizedError()
        record = users[0]
        return AuthenticatedUser(
            uid=str(record["localId"]),
            email=record.get("email"),
            name=record.get("displayName"),
            picture=record.get("photoUrl"),
            claims=record,
        )


class Authenticator:
    """Combine the verifier with the token cache."""

    def __init__(self, verifier: IdentityVerifier, cache: TokenCache):
        self._verifier = verifier
        self._cache = cache

    async def authenticate(self, token: str) -> AuthenticatedUser:
        cached = self._cache.get(token)
        if cached is not None:
            return cached
        user = await self._verifier.verify(token)
        self._cache.set(token, user)
        return user


def get_bearer_token(request: Request) -> str | None:
    """Return the bearer token from the Authorization header, if any."""

    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


async def require_user(request: Request) -> AuthenticatedUser:
    token = get_bearer_token(request)
    if not token:
        raise UnauthorizedError("Missing Authorization bearer token")
    user = await request.app.state.context.authenticator.authenticate(token)
    request.state.user = user
    return user


async def optional_user(request: Request) -> AuthenticatedUser | None:
    token = get_bearer_token(request)
    if not token:
        return None
    try:
        user = await request.app.state.context.authenticator.authenticate(token)
    except AppError as exc:
        logger.debug("Optional auth failed, continuing without user: %s", exc.message)
        return None
    request.state.user = user
    return user


CurrentUser = Annotated[AuthenticatedUser, Depends(require_user)]
OptionalUser = Annotated[AuthenticatedUser | None, Depends(optional_user)]
