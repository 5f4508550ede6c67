"""
Task manager auth core - main entry point.

Seeds an in-memory store and walks through each credential scheme and
capability check. Run it to verify the installation.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import jwt

from taskmanager.auth import (
    AuthResolver,
    LinkCodeService,
    RequestCredentials,
    Requirement,
    Resolved,
)
from taskmanager.auth.tokens import create_session_token, sign_discord_request
from taskmanager.config import Settings
from taskmanager.core.utils import SystemClock, to_millis
from taskmanager.storage import create_local_storage


DEMO_SECRET = "demo-secret-with-enough-bytes-for-hs256"
DISCORD_ID = "123456789012345678"


def _describe(result) -> str:
    if isinstance(result, Resolved):
        return f"resolved as {result.actor.id} via {result.actor.scheme.value}"
    return f"{type(result).__name__} ({result.reason.value}: {result.detail})"


async def demo():
    """Resolve a handful of requests against a seeded store."""
    print("=" * 60)
    print("TASK MANAGER AUTH DEMO")
    print("=" * 60)
    print()

    settings = Settings(
        supabase_url="https://demo.supabase.co",
        supabase_jwt_secret=DEMO_SECRET,
        session_secret=DEMO_SECRET,
        discord_bot_secret=DEMO_SECRET,
        super_admin_email="root@example.com",
    )
    clock = SystemClock()
    store = create_local_storage(clock)
    store.add_user({"id": "alice", "username": "alice", "name": "Alice", "email": "Root@Example.com"})
    store.add_user({"id": "bob", "username": "bob", "name": "Bob", "is_admin": 1})
    store.add_project({"id": "p1", "name": "Launch", "owner_id": "alice", "is_personal": 0})

    resolver = AuthResolver(store, settings, clock=clock)
    link_codes = LinkCodeService(store, store, clock=clock)
    now = clock.now()

    # Bearer token
    token = jwt.encode(
        {
            "sub": "alice",
            "aud": "authenticated",
            "iss": settings.jwt_issuer,
            "exp": int((now + timedelta(hours=1)).timestamp()),
        },
        DEMO_SECRET,
        algorithm="HS256",
    )
    bearer = RequestCredentials.from_mapping({"Authorization": f"Bearer {token}"})
    print(f"Bearer, owner check on p1: {_describe(await resolver.resolve(bearer, Requirement.project_owner('p1')))}")
    print(f"Bearer, super admin:       {_describe(await resolver.resolve(bearer, Requirement.super_admin()))}")

    # Session cookie
    cookie = create_session_token("bob", DEMO_SECRET, now=now)
    session = RequestCredentials.from_mapping(cookies={settings.session_cookie_name: cookie})
    print(f"Session, member of p1:     {_describe(await resolver.resolve(session, Requirement.project_member('p1')))}")
    print(f"Session, admin:            {_describe(await resolver.resolve(session, Requirement.admin()))}")

    # Discord bot, before and after linking
    def discord_headers() -> RequestCredentials:
        timestamp = str(to_millis(clock.now()))
        return RequestCredentials.from_mapping({
            "X-Discord-User-Id": DISCORD_ID,
            "X-Discord-Timestamp": timestamp,
            "X-Discord-Signature": sign_discord_request(DISCORD_ID, timestamp, DEMO_SECRET),
        })

    print(f"Discord, unlinked:         {_describe(await resolver.resolve(discord_headers()))}")
    issued = await link_codes.issue("bob")
    outcome = await link_codes.redeem(issued.code, DISCORD_ID, "bob#0001")
    print(f"Redeemed {issued.code}:      {outcome.value}")
    print(f"Discord, linked:           {_describe(await resolver.resolve(discord_headers()))}")

    print()
    print("=" * 60)
    print("Demo complete!")
    print("=" * 60)


def main():
    """Main entry point."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(demo())


if __name__ == "__main__":
    main()
