"""Shared fixtures: settings, a frozen clock, a seeded store, token helpers."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from taskmanager.auth import AuthResolver, LinkCodeService, RequestCredentials
from taskmanager.auth.tokens import create_session_token, sign_discord_request
from taskmanager.config import Settings
from taskmanager.core.utils import FrozenClock, to_millis
from taskmanager.storage import InMemoryStore


JWT_SECRET = "test-jwt-secret-that-is-long-enough-for-hs256"
SESSION_SECRET = "test-session-secret-long-enough-for-hs256"
BOT_SECRET = "test-bot-secret-long-enough-for-hmac-sha256"
SUPABASE_URL = "https://proj.supabase.co"
ISSUER = f"{SUPABASE_URL}/auth/v1"
SUPER_ADMIN_EMAIL = "Boss@Example.com"

DISCORD_ID = "123456789012345678"
OTHER_DISCORD_ID = "876543210987654321"

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        supabase_url=SUPABASE_URL,
        supabase_jwt_secret=JWT_SECRET,
        session_secret=SESSION_SECRET,
        discord_bot_secret=BOT_SECRET,
        super_admin_email=SUPER_ADMIN_EMAIL,
        super_admin_email_case_sensitive=False,
    )


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def store(clock):
    """
    alice owns p1 and her personal project; carol is a member of p1;
    bob is nobody in particular; dave is an admin; boss is the super admin.
    """
    s = InMemoryStore(clock)
    s.add_user({"id": "alice", "username": "alice", "name": "Alice", "email": "alice@example.com"})
    s.add_user({"id": "bob", "username": "bob", "name": "Bob", "email": "bob@example.com"})
    s.add_user({"id": "carol", "username": "carol", "name": "Carol"})
    s.add_user({"id": "dave", "username": "dave", "name": "Dave", "is_admin": 1})
    s.add_user({"id": "boss", "username": "boss", "name": "Boss", "email": SUPER_ADMIN_EMAIL})
    s.add_user({
        "id": "erin",
        "username": "erin",
        "name": "Erin",
        "discord_user_id": OTHER_DISCORD_ID,
        "discord_verified": 1,
    })
    s.add_project({"id": "p1", "name": "Launch", "owner_id": "alice", "is_personal": 0})
    s.add_project({"id": "alice-personal", "name": "My Tasks", "owner_id": "alice", "is_personal": 1})
    s.add_project_member("p1", "carol")
    return s


@pytest.fixture
def resolver(store, settings, clock):
    return AuthResolver(store, settings, clock=clock)


@pytest.fixture
def link_codes(store, clock):
    return LinkCodeService(store, store, clock=clock)


# =============================================================================
# Credential helpers
# =============================================================================


def make_jwt(sub: str, now: datetime, secret: str = JWT_SECRET, **claims) -> str:
    payload = {
        "sub": sub,
        "email": f"{sub}@example.com",
        "aud": "authenticated",
        "iss": ISSUER,
        "exp": int((now + timedelta(hours=1)).timestamp()),
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def bearer(token: str) -> RequestCredentials:
    return RequestCredentials.from_mapping({"Authorization": f"Bearer {token}"})


def session_cookie(user_id: str, now: datetime, settings: Settings) -> RequestCredentials:
    token = create_session_token(user_id, settings.session_secret, now=now)
    return RequestCredentials.from_mapping(cookies={settings.session_cookie_name: token})


def discord_headers(
    discord_id: str,
    now: datetime,
    secret: str = BOT_SECRET,
    offset_ms: int = 0,
) -> dict[str, str]:
    timestamp = str(to_millis(now) + offset_ms)
    return {
        "X-Discord-User-Id": discord_id,
        "X-Discord-Timestamp": timestamp,
        "X-Discord-Signature": sign_discord_request(discord_id, timestamp, secret),
    }


def discord_request(discord_id: str, now: datetime, **kwargs) -> RequestCredentials:
    return RequestCredentials.from_mapping(discord_headers(discord_id, now, **kwargs))
