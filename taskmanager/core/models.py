"""
Core data models for the task manager.

These are the value types the auth core reasons about: Users, Projects,
and the short-lived Discord link codes. Storage adapters translate their
own row shapes into these models; nothing above the storage layer ever
sees a raw row.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from taskmanager.core.utils import utc_now


# =============================================================================
# User
# =============================================================================


class User(BaseModel):
    """
    An identity record.

    `id` equals the identity provider subject for users created through a
    magic-link login. Super-admin status is not stored here; it depends on
    configuration and is derived per request.
    """

    id: str
    username: str
    name: str
    email: str | None = None
    is_admin: bool = False

    # Discord link
    discord_user_id: str | None = None
    discord_handle: str | None = None
    discord_verified: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


# =============================================================================
# Project
# =============================================================================


class Project(BaseModel):
    """A project with exactly one owner and any number of members."""

    id: str
    name: str = ""
    owner_id: str = Field(min_length=1)
    member_ids: frozenset[str] = Field(default_factory=frozenset)
    is_personal: bool = False

    model_config = {"frozen": True}

    def is_owner(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def has_member(self, user_id: str) -> bool:
        """The owner is always implicitly a member."""
        return self.is_owner(user_id) or user_id in self.member_ids


# =============================================================================
# Discord link codes
# =============================================================================


class LinkCode(BaseModel):
    """A single-use code binding a web account to a Discord user id."""

    code: str
    user_id: str
    expires_at: datetime
    used: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
