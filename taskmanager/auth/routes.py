# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   GET  /auth/me                 - Get current user
#   POST /auth/session            - Exchange a provider token for a session cookie
#   POST /auth/logout             - Clear the session cookie
#
# Discord:
#   GET  /api/discord/status                - Current user's Discord link
#   POST /api/discord/generate-link-code    - Issue a link code
#   GET  /api/discord/link-status/{code}    - Poll a link code
#   POST /api/discord/verify-link-code      - Redeem a code (bot-signed)
#   POST /api/discord/interactions          - Interactions webhook (Ed25519)
#
# =============================================================================

from __future__ import annotations

import json
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from taskmanager.auth.context import Actor, Unauthenticated
from taskmanager.auth.decoders import RequestCredentials, session_max_age
from taskmanager.auth.errors import FailureKind
from taskmanager.auth.link_codes import (
    LinkCodeGenerationError,
    LinkCodeService,
    LinkCodeStatus,
    RedeemOutcome,
)
from taskmanager.auth.policies import raise_for_result, require_auth
from taskmanager.auth.rate_limit import RateLimiter
from taskmanager.auth.resolver import AuthResolver
from taskmanager.auth.tokens import create_session_token, verify_interaction_signature
from taskmanager.config import Settings
from taskmanager.core.models import User
from taskmanager.core.utils import to_millis
from taskmanager.storage.base import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# =============================================================================
# Dependencies
# =============================================================================


def get_resolver(request: Request) -> AuthResolver:
    return request.app.state.resolver


def get_link_codes(request: Request) -> LinkCodeService:
    return request.app.state.link_codes


def get_directory(request: Request) -> UserDirectory:
    return request.app.state.storage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_limiter(name: str):
    """Dependency returning the app's rate limiter for one action."""

    def dependency(request: Request) -> RateLimiter:
        return request.app.state.rate_limiters[name]

    return dependency


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(limiter: RateLimiter, key: str) -> None:
    allowed, retry_after = limiter.attempt(key)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many attempts. Please try again later.",
            headers={"Retry-After": str(math.ceil(retry_after or 0))},
        )


# =============================================================================
# Request/Response Models
# =============================================================================


class UserResponse(BaseModel):
    """User data returned to client."""
    id: str
    username: str
    name: str
    email: str | None
    is_admin: bool
    is_super_admin: bool = False
    discord_handle: str | None = None
    discord_verified: bool = False

    @classmethod
    def from_user(cls, user: User, is_super_admin: bool = False) -> UserResponse:
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            email=user.email,
            is_admin=user.is_admin,
            is_super_admin=is_super_admin,
            discord_handle=user.discord_handle,
            discord_verified=user.discord_verified,
        )


class SessionRequest(BaseModel):
    access_token: str = Field(min_length=1)


class IdentityProfile(BaseModel):
    """What the identity provider told us about someone without an account."""
    id: str
    email: str | None = None
    name: str

    @classmethod
    def from_claims(cls, claims: dict) -> IdentityProfile:
        email = claims.get("email") or None
        metadata = claims.get("user_metadata") or {}
        name = metadata.get("name") or (email.split("@")[0] if email else "") or "User"
        return cls(id=str(claims["sub"]), email=email, name=name)


class ProfileSetupResponse(BaseModel):
    needsProfileSetup: bool = True
    supabaseUser: IdentityProfile


class DiscordStatusResponse(BaseModel):
    discord_handle: str | None
    discord_user_id: str | None
    discord_verified: bool


class LinkCodeResponse(BaseModel):
    code: str
    expiresAt: int  # epoch ms
    expiresIn: int  # seconds


class VerifyLinkCodeRequest(BaseModel):
    code: str = Field(min_length=1)
    discordUserId: str = Field(min_length=1)
    discordHandle: str | None = None


# =============================================================================
# Session Endpoints
# =============================================================================


@router.get("/auth/me", response_model=UserResponse)
async def get_current_user(actor: Actor = Depends(require_auth())):
    """Get the current authenticated user."""
    return UserResponse.from_user(actor.user, actor.is_super_admin)


@router.post("/auth/session", response_model=UserResponse | ProfileSetupResponse)
async def create_session(
    data: SessionRequest,
    request: Request,
    response: Response,
    resolver: AuthResolver = Depends(get_resolver),
    settings: Settings = Depends(get_app_settings),
    limiter: RateLimiter = Depends(get_limiter("session")),
):
    """
    Exchange an identity provider access token for a session cookie.

    The token goes through the same bearer verification as any API call.
    A verified token for someone without an account gets no cookie; the
    client is told to finish profile setup instead.
    """
    enforce_rate_limit(limiter, client_ip(request))

    credentials = RequestCredentials.from_mapping(
        {"Authorization": f"Bearer {data.access_token}"}
    )
    decoded = resolver.decode(credentials)
    if isinstance(decoded, Unauthenticated):
        raise_for_result(decoded)

    result = await resolver.load_actor(decoded)
    if isinstance(result, Unauthenticated) and result.reason is FailureKind.UNKNOWN_IDENTITY:
        logger.info(f"No account yet for identity {decoded.subject}; profile setup required")
        return ProfileSetupResponse(supabaseUser=IdentityProfile.from_claims(decoded.claims))
    actor = raise_for_result(result)

    max_age = session_max_age(settings)
    token = create_session_token(
        actor.id,
        settings.session_secret,
        now=resolver.clock.now(),
        max_age=max_age,
    )
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )
    logger.info(f"Session started for user {actor.id}")
    return UserResponse.from_user(actor.user, actor.is_super_admin)


@router.post("/auth/logout")
async def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    """Logout (clears the session cookie)."""
    response.delete_cookie(settings.session_cookie_name, path="/")
    return {"message": "Logged out successfully"}


# =============================================================================
# Discord Linking
# =============================================================================


@router.get("/api/discord/status", response_model=DiscordStatusResponse)
async def discord_status(
    actor: Actor = Depends(require_auth()),
    directory: UserDirectory = Depends(get_directory),
):
    user = await directory.find_user_by_id(actor.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return DiscordStatusResponse(
        discord_handle=user.discord_handle,
        discord_user_id=user.discord_user_id,
        discord_verified=user.discord_verified,
    )


@router.post("/api/discord/generate-link-code", response_model=LinkCodeResponse)
async def generate_link_code(
    actor: Actor = Depends(require_auth()),
    link_codes: LinkCodeService = Depends(get_link_codes),
    limiter: RateLimiter = Depends(get_limiter("link_code")),
):
    enforce_rate_limit(limiter, actor.id)
    try:
        issued = await link_codes.issue(actor.id)
    except LinkCodeGenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return LinkCodeResponse(
        code=issued.code,
        expiresAt=to_millis(issued.expires_at),
        expiresIn=issued.expires_in,
    )


@router.get("/api/discord/link-status/{code}")
async def link_status(
    code: str,
    actor: Actor = Depends(require_auth()),
    link_codes: LinkCodeService = Depends(get_link_codes),
    directory: UserDirectory = Depends(get_directory),
):
    status = await link_codes.status(code, actor.id)
    if status is LinkCodeStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Code not found")

    if status is LinkCodeStatus.LINKED:
        user = await directory.find_user_by_id(actor.id)
        return {
            "status": status.value,
            "discord_handle": user.discord_handle if user else None,
            "discord_user_id": user.discord_user_id if user else None,
        }
    return {"status": status.value}


REDEEM_ERRORS: dict[RedeemOutcome, tuple[int, str]] = {
    RedeemOutcome.NOT_FOUND: (404, "Invalid code"),
    RedeemOutcome.EXPIRED: (400, "Code expired"),
    RedeemOutcome.ALREADY_USED: (400, "Code already used"),
    RedeemOutcome.INVALID_DISCORD_ID: (400, "Invalid Discord User ID format"),
    RedeemOutcome.ALREADY_LINKED_TO_ANOTHER_USER: (
        409,
        "This Discord account is already linked to a user",
    ),
}


@router.post("/api/discord/verify-link-code")
async def verify_link_code(
    data: VerifyLinkCodeRequest,
    request: Request,
    resolver: AuthResolver = Depends(get_resolver),
    link_codes: LinkCodeService = Depends(get_link_codes),
):
    """
    Redeem a link code. Called by the Discord bot.

    The request must carry a valid bot signature for the same Discord
    user id that is being linked.
    """
    signed = resolver.verify_bot_request(RequestCredentials.from_request(request))
    if not isinstance(signed, str):
        raise_for_result(signed)
    if signed != data.discordUserId:
        raise HTTPException(status_code=403, detail="Signed Discord user does not match")

    outcome = await link_codes.redeem(data.code, data.discordUserId, data.discordHandle)
    if not outcome.ok:
        status_code, message = REDEEM_ERRORS[outcome]
        raise HTTPException(status_code=status_code, detail={"error": message, "reason": outcome.value})

    return {"success": True, "message": "Discord account linked successfully"}


# =============================================================================
# Discord Interactions
# =============================================================================


PING = 1
PONG = 1


@router.post("/api/discord/interactions")
async def discord_interactions(
    request: Request,
    settings: Settings = Depends(get_app_settings),
):
    """
    Interactions webhook. Only PING is answered here; slash commands are
    handled by the command layer.
    """
    signature = request.headers.get("x-signature-ed25519")
    timestamp = request.headers.get("x-signature-timestamp")
    body = await request.body()

    if not (signature and timestamp and settings.discord_public_key):
        raise HTTPException(status_code=401, detail="Bad request signature")
    if not verify_interaction_signature(settings.discord_public_key, signature, timestamp, body):
        logger.warning("Discord interaction signature rejected")
        raise HTTPException(status_code=401, detail="Bad request signature")

    try:
        interaction = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(interaction, dict):
        raise HTTPException(status_code=400, detail="Interaction must be an object")

    if interaction.get("type") == PING:
        return {"type": PONG}
    raise HTTPException(status_code=400, detail="Unsupported interaction type")
