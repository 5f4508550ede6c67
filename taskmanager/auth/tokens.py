# =============================================================================
# Token Verification Primitives
# =============================================================================
#
# Everything cryptographic the resolver needs:
#   - JWT verification (one function, key source picked by configuration)
#   - Signed session cookies
#   - Discord bot HMAC signatures
#   - Discord interaction Ed25519 signatures
#
# Failures raise CredentialError subclasses; callers decide what to do.
#
# =============================================================================

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

import jwt
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from taskmanager.auth.errors import (
    ExpiredCredentialError,
    IdentityProviderUnavailableError,
    MalformedCredentialError,
    SignatureMismatchError,
)
from taskmanager.config import Settings

logger = logging.getLogger(__name__)


DISCORD_SIGNATURE_LENGTH = 64  # hex chars of a SHA-256 digest
HEX_SIGNATURE_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


# =============================================================================
# Key Sources
# =============================================================================


class KeySource(ABC):
    """Where the verification key for a JWT comes from."""

    algorithms: tuple[str, ...] = ()

    def supports(self, algorithm: str) -> bool:
        return algorithm in self.algorithms

    @abstractmethod
    def key_for(self, token: str) -> Any:
        pass


class SecretKeySource(KeySource):
    """Shared HMAC secret (HS256)."""

    algorithms = ("HS256",)

    def __init__(self, secret: str):
        self.secret = secret

    def key_for(self, token: str) -> Any:
        return self.secret


class JwksKeySource(KeySource):
    """The identity provider's public key set (RS256/ES256)."""

    algorithms = ("RS256", "ES256")

    def __init__(self, jwks_url: str = "", client: Any = None):
        # `client` only needs get_signing_key_from_jwt(token) -> obj with .key
        self.client = client or jwt.PyJWKClient(jwks_url, cache_keys=True)

    def key_for(self, token: str) -> Any:
        try:
            return self.client.get_signing_key_from_jwt(token).key
        except jwt.PyJWKClientConnectionError as e:
            raise IdentityProviderUnavailableError(str(e)) from e
        except jwt.PyJWKClientError as e:
            raise SignatureMismatchError(f"No matching signing key: {e}") from e


def build_key_sources(settings: Settings, jwks_client: Any = None) -> list[KeySource]:
    """Key sources for identity provider tokens, asymmetric first."""
    sources: list[KeySource] = []
    if jwks_client is not None or settings.jwks_url:
        sources.append(JwksKeySource(settings.jwks_url, client=jwks_client))
    if settings.supabase_jwt_secret:
        sources.append(SecretKeySource(settings.supabase_jwt_secret))
    return sources


# =============================================================================
# JWT Verification
# =============================================================================


def verify_jwt(
    token: str,
    key_sources: list[KeySource],
    *,
    now: datetime,
    issuer: str = "",
    audience: str = "",
    subject_claim: str = "sub",
) -> dict[str, Any]:
    """
    Verify a JWT and return its claims.

    The token header's `alg` picks the key source. Time-based claims are
    checked against `now` rather than the process clock.

    Raises:
        MalformedCredentialError: Not a JWT, or required claims missing
        SignatureMismatchError: No key for the alg, or signature invalid
        ExpiredCredentialError: `exp` has passed or `nbf` not reached
    """
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as e:
        raise MalformedCredentialError(f"Unparseable token: {e}") from e

    algorithm = header.get("alg", "")
    source = next((s for s in key_sources if s.supports(algorithm)), None)
    if source is None:
        raise SignatureMismatchError(f"No key source for algorithm {algorithm!r}")

    key = source.key_for(token)

    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=[algorithm],
            options={
                "verify_exp": False,
                "verify_nbf": False,
                "verify_iat": False,
                "verify_aud": False,
                "verify_iss": False,
                "require": ["exp", subject_claim],
            },
        )
    except jwt.InvalidSignatureError as e:
        raise SignatureMismatchError("Signature verification failed") from e
    except jwt.MissingRequiredClaimError as e:
        raise MalformedCredentialError(str(e)) from e
    except jwt.InvalidTokenError as e:
        raise MalformedCredentialError(f"Invalid token: {e}") from e

    timestamp = now.timestamp()

    if not isinstance(claims["exp"], (int, float)):
        raise MalformedCredentialError("exp must be numeric")
    if timestamp >= claims["exp"]:
        raise ExpiredCredentialError("Token has expired")
    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and timestamp < nbf:
        raise ExpiredCredentialError("Token not yet valid")

    # iss/aud are only checked when the token carries them
    iss = claims.get("iss")
    if issuer and iss is not None and issuer not in str(iss):
        raise SignatureMismatchError("Invalid issuer")

    aud = claims.get("aud")
    if audience and aud is not None:
        audiences = aud if isinstance(aud, list) else [aud]
        if audience not in audiences:
            raise SignatureMismatchError("Invalid audience")

    if not claims.get(subject_claim):
        raise MalformedCredentialError(f"Empty {subject_claim} claim")

    return claims


# =============================================================================
# Session Tokens (signed cookie)
# =============================================================================


def create_session_token(
    user_id: str,
    secret: str,
    *,
    now: datetime,
    max_age: timedelta = timedelta(hours=24),
) -> str:
    """Create the signed value stored in the session cookie."""
    payload = {
        "userId": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + max_age).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_session_token(token: str, secret: str, *, now: datetime) -> str:
    """Return the user id held by a session cookie value."""
    claims = verify_jwt(
        token,
        [SecretKeySource(secret)],
        now=now,
        subject_claim="userId",
    )
    return str(claims["userId"])


# =============================================================================
# Discord Bot HMAC
# =============================================================================


def sign_discord_request(discord_user_id: str, timestamp_ms: int | str, secret: str) -> str:
    """HMAC-SHA256 over "{discord_user_id}|{timestamp}", lowercase hex."""
    payload = f"{discord_user_id}|{timestamp_ms}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_discord_signature(
    discord_user_id: str,
    timestamp_ms: str,
    signature: str,
    secret: str,
) -> None:
    """
    Check a bot signature in constant time.

    Raises MalformedCredentialError for a signature that is not 64 hex
    characters and SignatureMismatchError when the digest differs.
    """
    if len(signature) != DISCORD_SIGNATURE_LENGTH:
        raise MalformedCredentialError("Invalid signature length")
    if not HEX_SIGNATURE_PATTERN.fullmatch(signature):
        raise MalformedCredentialError("Signature is not hex")
    received = bytes.fromhex(signature)

    expected = bytes.fromhex(sign_discord_request(discord_user_id, timestamp_ms, secret))
    if not hmac.compare_digest(received, expected):
        raise SignatureMismatchError("Signature mismatch")


# =============================================================================
# Discord Interactions (Ed25519)
# =============================================================================


def verify_interaction_signature(
    public_key_hex: str,
    signature_hex: str,
    timestamp: str,
    body: bytes,
) -> bool:
    """Verify an interactions webhook signature over timestamp + raw body."""
    try:
        key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        key.verify(bytes.fromhex(signature_hex), timestamp.encode("utf-8") + body)
    except (InvalidSignature, ValueError):
        return False
    return True
