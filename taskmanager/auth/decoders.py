"""
Credential decoders.

Each decoder looks at one kind of credential and answers one of:
- None: this request doesn't carry my credential, ask the next decoder
- DecodedCredential: verified, here is who it claims to be
- raises CredentialError: my credential is present but bad, stop here

Order matters and is fixed: Discord bot signature, bearer JWT, session
cookie. A bad high-priority credential must never fall through to a
weaker scheme.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping

from taskmanager.auth.errors import (
    ExpiredCredentialError,
    MalformedCredentialError,
    SignatureMismatchError,
)
from taskmanager.auth.tokens import (
    KeySource,
    build_key_sources,
    decode_session_token,
    verify_discord_signature,
    verify_jwt,
)
from taskmanager.config import Settings
from taskmanager.core.utils import to_millis

logger = logging.getLogger(__name__)


DISCORD_USER_ID_HEADER = "x-discord-user-id"
DISCORD_TIMESTAMP_HEADER = "x-discord-timestamp"
DISCORD_SIGNATURE_HEADER = "x-discord-signature"

DISCORD_ID_PATTERN = re.compile(r"[0-9]{17,19}")
TIMESTAMP_PATTERN = re.compile(r"[0-9]+")


class CredentialScheme(str, Enum):
    DISCORD = "discord"
    BEARER = "bearer"
    SESSION = "session"


# =============================================================================
# Request credential material
# =============================================================================


@dataclass(frozen=True)
class RequestCredentials:
    """Headers and cookies of an inbound request, header names lowercased."""

    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        headers: Mapping[str, str] | None = None,
        cookies: Mapping[str, str] | None = None,
    ) -> RequestCredentials:
        return cls(
            headers={k.lower(): v for k, v in (headers or {}).items()},
            cookies=dict(cookies or {}),
        )

    @classmethod
    def from_request(cls, request: Any) -> RequestCredentials:
        """Build from a Starlette/FastAPI request."""
        return cls.from_mapping(dict(request.headers), dict(request.cookies))

    def header(self, name: str) -> str | None:
        """Header value, or None when absent. Present but empty gives ""."""
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class DecodedCredential:
    """A verified credential.

    `subject` is a User.id for bearer/session and a Discord user id for
    the Discord scheme.
    """

    scheme: CredentialScheme
    subject: str
    claims: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Decoders
# =============================================================================


class CredentialDecoder(ABC):
    scheme: CredentialScheme

    @abstractmethod
    def decode(self, credentials: RequestCredentials, now: datetime) -> DecodedCredential | None:
        pass


class DiscordSignatureDecoder(CredentialDecoder):
    """Requests made by our Discord bot on behalf of a Discord user."""

    scheme = CredentialScheme.DISCORD

    def __init__(self, secret: str, window_ms: int = 60_000):
        self.secret = secret
        self.window_ms = window_ms

    def verify(self, credentials: RequestCredentials, now: datetime) -> str | None:
        """Verify the signed headers and return the Discord user id."""
        discord_user_id = credentials.header(DISCORD_USER_ID_HEADER)
        timestamp = credentials.header(DISCORD_TIMESTAMP_HEADER)
        signature = credentials.header(DISCORD_SIGNATURE_HEADER)

        if discord_user_id is None and timestamp is None and signature is None:
            return None
        if not (discord_user_id and timestamp and signature):
            raise MalformedCredentialError("Missing required Discord headers")

        if not self.secret:
            logger.error("Discord bot secret not configured; rejecting signed request")
            raise SignatureMismatchError("Bot secret not configured")

        if not DISCORD_ID_PATTERN.fullmatch(discord_user_id):
            raise MalformedCredentialError("Invalid Discord user id")
        if not TIMESTAMP_PATTERN.fullmatch(timestamp):
            raise MalformedCredentialError("Invalid timestamp format")

        verify_discord_signature(discord_user_id, timestamp, signature, self.secret)

        age_ms = to_millis(now) - int(timestamp)
        if abs(age_ms) > self.window_ms:
            raise ExpiredCredentialError(f"Request outside signature window ({age_ms}ms)")

        return discord_user_id

    def decode(self, credentials: RequestCredentials, now: datetime) -> DecodedCredential | None:
        discord_user_id = self.verify(credentials, now)
        if discord_user_id is None:
            return None
        return DecodedCredential(self.scheme, discord_user_id)


class BearerTokenDecoder(CredentialDecoder):
    """`Authorization: Bearer <jwt>` issued by the identity provider."""

    scheme = CredentialScheme.BEARER

    def __init__(self, key_sources: list[KeySource], issuer: str = "", audience: str = ""):
        self.key_sources = key_sources
        self.issuer = issuer
        self.audience = audience

    def decode(self, credentials: RequestCredentials, now: datetime) -> DecodedCredential | None:
        authorization = credentials.header("authorization")
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer":
            return None
        token = token.strip()
        if not token:
            raise MalformedCredentialError("Empty bearer token")
        if not self.key_sources:
            logger.error("No identity provider keys configured; rejecting bearer token")
            raise SignatureMismatchError("Bearer tokens not accepted")

        claims = verify_jwt(
            token,
            self.key_sources,
            now=now,
            issuer=self.issuer,
            audience=self.audience,
        )
        return DecodedCredential(self.scheme, str(claims["sub"]), claims)


class SessionCookieDecoder(CredentialDecoder):
    """Signed session cookie set by POST /auth/session."""

    scheme = CredentialScheme.SESSION

    def __init__(self, secret: str, cookie_name: str = "auth_token"):
        self.secret = secret
        self.cookie_name = cookie_name

    def decode(self, credentials: RequestCredentials, now: datetime) -> DecodedCredential | None:
        token = credentials.cookies.get(self.cookie_name)
        if not token:
            return None
        user_id = decode_session_token(token, self.secret, now=now)
        return DecodedCredential(self.scheme, user_id)


def build_decoders(settings: Settings, jwks_client: Any = None) -> list[CredentialDecoder]:
    """All decoders, in priority order."""
    return [
        DiscordSignatureDecoder(
            settings.discord_bot_secret,
            window_ms=settings.discord_signature_window_ms,
        ),
        BearerTokenDecoder(
            build_key_sources(settings, jwks_client),
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        ),
        SessionCookieDecoder(settings.session_secret, settings.session_cookie_name),
    ]


def session_max_age(settings: Settings) -> timedelta:
    return timedelta(hours=settings.session_max_age_hours)
