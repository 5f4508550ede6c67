"""
Discord link codes.

A signed-in user asks for a code, types it into the Discord bot, and the
bot redeems it to bind the Discord user id to the web account.

    issue ──> PENDING ──redeem──> LINKED (used)
                 └──── TTL ─────> EXPIRED

Expiry is evaluated lazily against the injected clock; nothing sweeps.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from taskmanager.auth.decoders import DISCORD_ID_PATTERN
from taskmanager.core.models import LinkCode
from taskmanager.core.utils import Clock, SystemClock
from taskmanager.storage.base import (
    DiscordIdentityConflictError,
    DiscordLinkStore,
    UserDirectory,
)

logger = logging.getLogger(__name__)


CODE_PREFIX = "LINK-"
CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CODE_LENGTH = 5
MAX_GENERATION_ATTEMPTS = 10
DEFAULT_TTL = timedelta(minutes=5)


class LinkCodeStatus(str, Enum):
    PENDING = "pending"
    LINKED = "linked"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


class RedeemOutcome(str, Enum):
    LINKED = "linked"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    ALREADY_LINKED_TO_ANOTHER_USER = "already_linked_to_another_user"
    INVALID_DISCORD_ID = "invalid_discord_id"

    @property
    def ok(self) -> bool:
        return self is RedeemOutcome.LINKED


@dataclass(frozen=True)
class LinkCodeIssue:
    code: str
    expires_at: datetime
    expires_in: int  # seconds


class LinkCodeGenerationError(Exception):
    """Could not find an unused code."""
    pass


def generate_link_code() -> str:
    """A code like LINK-7QX2A."""
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    return f"{CODE_PREFIX}{suffix}"


class LinkCodeService:
    """Issue, inspect and redeem Discord link codes."""

    def __init__(
        self,
        store: DiscordLinkStore,
        directory: UserDirectory,
        clock: Clock | None = None,
        ttl: timedelta = DEFAULT_TTL,
    ):
        self.store = store
        self.directory = directory
        self.clock = clock or SystemClock()
        self.ttl = ttl

    async def issue(self, user_id: str) -> LinkCodeIssue:
        """
        Issue a fresh code for this user.

        Any earlier unused code stops working, and an existing Discord
        binding is cleared so the user can relink.
        """
        removed = await self.store.delete_unused_link_codes(user_id)
        if removed:
            logger.info(f"Invalidated {removed} unused link code(s) for user {user_id}")
        await self.store.clear_discord_identity(user_id)

        code = None
        for _ in range(MAX_GENERATION_ATTEMPTS):
            candidate = generate_link_code()
            if not await self.store.link_code_exists(candidate):
                code = candidate
                break
        if code is None:
            raise LinkCodeGenerationError("Failed to generate unique code")

        now = self.clock.now()
        link_code = LinkCode(
            code=code,
            user_id=user_id,
            expires_at=now + self.ttl,
            created_at=now,
        )
        await self.store.save_link_code(link_code)
        logger.info(f"Issued Discord link code for user {user_id}")

        return LinkCodeIssue(
            code=code,
            expires_at=link_code.expires_at,
            expires_in=int(self.ttl.total_seconds()),
        )

    async def status(self, code: str, user_id: str) -> LinkCodeStatus:
        """Status of a code, as seen by the user who issued it."""
        link_code = await self.store.get_link_code(code)
        if link_code is None or link_code.user_id != user_id:
            return LinkCodeStatus.NOT_FOUND
        if link_code.used:
            return LinkCodeStatus.LINKED
        if link_code.is_expired(self.clock.now()):
            return LinkCodeStatus.EXPIRED
        return LinkCodeStatus.PENDING

    async def redeem(
        self,
        code: str,
        discord_user_id: str,
        discord_handle: str | None = None,
    ) -> RedeemOutcome:
        """
        Bind `discord_user_id` to the user who issued `code`.

        A Discord id already bound to any user, including the code's own
        user, is a conflict.
        """
        if not DISCORD_ID_PATTERN.fullmatch(discord_user_id or ""):
            return RedeemOutcome.INVALID_DISCORD_ID

        link_code = await self.store.get_link_code(code)
        if link_code is None:
            return RedeemOutcome.NOT_FOUND
        if link_code.used:
            return RedeemOutcome.ALREADY_USED
        if link_code.is_expired(self.clock.now()):
            return RedeemOutcome.EXPIRED

        existing = await self.directory.find_user_by_discord_id(discord_user_id)
        if existing is not None:
            logger.warning(f"Discord id already linked to user {existing.id}")
            return RedeemOutcome.ALREADY_LINKED_TO_ANOTHER_USER

        if not await self.store.mark_link_code_used(code):
            return RedeemOutcome.ALREADY_USED

        try:
            await self.store.bind_discord_identity(
                link_code.user_id, discord_user_id, discord_handle
            )
        except DiscordIdentityConflictError:
            return RedeemOutcome.ALREADY_LINKED_TO_ANOTHER_USER

        logger.info(f"Linked Discord account to user {link_code.user_id}")
        return RedeemOutcome.LINKED
