"""
Storage abstraction layer.

The auth core reads identities and projects through `UserDirectory` and
writes only through `DiscordLinkStore` (link-code issuance/redemption).
Swapping the backing store (in-memory rows, D1/SQLite, a JSON file) only
means providing another adapter; row-shape translation happens inside the
adapter and never leaks into the resolver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from taskmanager.core.models import LinkCode, Project, User


class DirectoryUnavailableError(Exception):
    """The backing store could not be reached.

    This is an infrastructure failure, not an auth failure. The resolver
    lets it propagate.
    """
    pass


class DiscordIdentityConflictError(Exception):
    """The Discord user id is already bound to a different user."""
    pass


# =============================================================================
# Storage Interfaces
# =============================================================================


class UserDirectory(ABC):
    """
    Read access to users and projects.

    Every lookup may legitimately return "not found" (None / empty list).
    Adapters raise `DirectoryUnavailableError` when the store itself fails.
    """

    @abstractmethod
    async def find_user_by_id(self, user_id: str) -> User | None:
        pass

    @abstractmethod
    async def find_user_by_discord_id(self, discord_user_id: str) -> User | None:
        pass

    @abstractmethod
    async def find_project_by_id(self, project_id: str) -> Project | None:
        pass

    @abstractmethod
    async def list_project_member_ids(self, project_id: str) -> list[str]:
        """Ids of explicit members (the owner may or may not be listed)."""
        pass


class DiscordLinkStore(ABC):
    """
    Persistence for Discord link codes and the user-side Discord binding.

    This is the only write surface used by the auth core.
    """

    @abstractmethod
    async def get_link_code(self, code: str) -> LinkCode | None:
        pass

    @abstractmethod
    async def link_code_exists(self, code: str) -> bool:
        pass

    @abstractmethod
    async def save_link_code(self, link_code: LinkCode) -> None:
        pass

    @abstractmethod
    async def delete_unused_link_codes(self, user_id: str) -> int:
        """Delete every unused code belonging to the user. Returns the count."""
        pass

    @abstractmethod
    async def mark_link_code_used(self, code: str) -> bool:
        """
        Flip `used` from False to True.

        Returns False if the code is missing or was already used, so two
        racing redemptions see at most one success on an atomic store.
        """
        pass

    @abstractmethod
    async def bind_discord_identity(
        self,
        user_id: str,
        discord_user_id: str,
        discord_handle: str | None = None,
    ) -> None:
        """Attach a verified Discord identity to a user.

        Raises DiscordIdentityConflictError if another user holds the id.
        """
        pass

    @abstractmethod
    async def clear_discord_identity(self, user_id: str) -> None:
        pass
