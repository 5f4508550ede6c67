"""
Local storage implementation for development and tests.

Rows are kept as plain dictionaries, the way the SQL and JSON backends
hand them back, and translated into `User` / `Project` / `LinkCode` on
the way out.
"""

from __future__ import annotations

from typing import Any

from taskmanager.core.models import LinkCode, Project, User
from taskmanager.core.utils import Clock, SystemClock
from taskmanager.storage.base import (
    DiscordIdentityConflictError,
    DiscordLinkStore,
    UserDirectory,
)


# =============================================================================
# Row translation
# =============================================================================


def _flag(value: Any) -> bool:
    """SQLite stores booleans as 0/1; JSON stores real booleans."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def user_from_row(row: dict[str, Any]) -> User:
    """Build a User from a users row (password hashes and extras are dropped)."""
    return User(
        id=str(row["id"]),
        username=row.get("username") or "",
        name=row.get("name") or row.get("username") or "",
        email=row.get("email") or None,
        is_admin=_flag(row.get("is_admin", False)),
        discord_user_id=row.get("discord_user_id") or None,
        discord_handle=row.get("discord_handle") or None,
        discord_verified=_flag(row.get("discord_verified", False)),
        **{k: row[k] for k in ("created_at", "updated_at") if row.get(k)},
    )


def _member_id(entry: Any) -> str | None:
    if isinstance(entry, dict):
        value = entry.get("user_id") or entry.get("id")
        return str(value) if value else None
    return str(entry) if entry else None


def project_from_row(
    row: dict[str, Any],
    member_rows: list[dict[str, Any]] | None = None,
) -> Project:
    """
    Build a Project from a projects row.

    Members can come inline (`members: [...]`, the JSON-file shape, either
    ids or objects) and/or from normalized `project_members` rows.
    """
    members: set[str] = set()
    for entry in row.get("members") or []:
        member_id = _member_id(entry)
        if member_id:
            members.add(member_id)
    for entry in member_rows or []:
        member_id = _member_id(entry)
        if member_id:
            members.add(member_id)

    return Project(
        id=str(row["id"]),
        name=row.get("name") or "",
        owner_id=str(row["owner_id"]),
        member_ids=frozenset(members),
        is_personal=_flag(row.get("is_personal", False)),
    )


def link_code_from_row(row: dict[str, Any]) -> LinkCode:
    return LinkCode(
        code=row["code"],
        user_id=str(row["user_id"]),
        expires_at=row["expires_at"],
        used=_flag(row.get("used", False)),
        **({"created_at": row["created_at"]} if row.get("created_at") else {}),
    )


# =============================================================================
# In-Memory Store
# =============================================================================


class InMemoryStore(UserDirectory, DiscordLinkStore):
    """In-memory row storage for development."""

    USERS = "users"
    PROJECTS = "projects"
    PROJECT_MEMBERS = "project_members"
    LINK_CODES = "discord_link_codes"

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self._data: dict[str, dict[str, dict[str, Any]]] = {
            self.USERS: {},
            self.PROJECTS: {},
            self.PROJECT_MEMBERS: {},
            self.LINK_CODES: {},
        }

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    def add_user(self, row: dict[str, Any]) -> User:
        user = user_from_row(row)
        if user.discord_user_id:
            holder = self._user_row_by_discord_id(user.discord_user_id)
            if holder and str(holder["id"]) != user.id:
                raise DiscordIdentityConflictError(user.discord_user_id)
        self._data[self.USERS][user.id] = dict(row)
        return user

    def add_project(self, row: dict[str, Any]) -> Project:
        project = project_from_row(row)
        self._data[self.PROJECTS][project.id] = dict(row)
        return project

    def add_project_member(self, project_id: str, user_id: str) -> None:
        key = f"{project_id}:{user_id}"
        self._data[self.PROJECT_MEMBERS][key] = {
            "project_id": project_id,
            "user_id": user_id,
            "added_at": self.clock.now().isoformat(),
        }

    def _user_row_by_discord_id(self, discord_user_id: str) -> dict[str, Any] | None:
        for row in self._data[self.USERS].values():
            if row.get("discord_user_id") == discord_user_id:
                return row
        return None

    def _member_rows(self, project_id: str) -> list[dict[str, Any]]:
        return [
            row for row in self._data[self.PROJECT_MEMBERS].values()
            if row["project_id"] == project_id
        ]

    # -------------------------------------------------------------------------
    # UserDirectory
    # -------------------------------------------------------------------------

    async def find_user_by_id(self, user_id: str) -> User | None:
        row = self._data[self.USERS].get(user_id)
        return user_from_row(row) if row else None

    async def find_user_by_discord_id(self, discord_user_id: str) -> User | None:
        row = self._user_row_by_discord_id(discord_user_id)
        return user_from_row(row) if row else None

    async def find_project_by_id(self, project_id: str) -> Project | None:
        row = self._data[self.PROJECTS].get(project_id)
        if not row:
            return None
        return project_from_row(row, self._member_rows(project_id))

    async def list_project_member_ids(self, project_id: str) -> list[str]:
        project = await self.find_project_by_id(project_id)
        if not project:
            return []
        return sorted(project.member_ids)

    # -------------------------------------------------------------------------
    # DiscordLinkStore
    # -------------------------------------------------------------------------

    async def get_link_code(self, code: str) -> LinkCode | None:
        row = self._data[self.LINK_CODES].get(code)
        return link_code_from_row(row) if row else None

    async def link_code_exists(self, code: str) -> bool:
        return code in self._data[self.LINK_CODES]

    async def save_link_code(self, link_code: LinkCode) -> None:
        self._data[self.LINK_CODES][link_code.code] = link_code.model_dump()

    async def delete_unused_link_codes(self, user_id: str) -> int:
        doomed = [
            code for code, row in self._data[self.LINK_CODES].items()
            if str(row["user_id"]) == user_id and not _flag(row.get("used"))
        ]
        for code in doomed:
            del self._data[self.LINK_CODES][code]
        return len(doomed)

    async def mark_link_code_used(self, code: str) -> bool:
        # No await between the read and the write, so this is atomic on one loop.
        row = self._data[self.LINK_CODES].get(code)
        if not row or _flag(row.get("used")):
            return False
        row["used"] = True
        return True

    async def bind_discord_identity(
        self,
        user_id: str,
        discord_user_id: str,
        discord_handle: str | None = None,
    ) -> None:
        holder = self._user_row_by_discord_id(discord_user_id)
        if holder and str(holder["id"]) != user_id:
            raise DiscordIdentityConflictError(discord_user_id)
        row = self._data[self.USERS].get(user_id)
        if row is None:
            raise KeyError(f"User not found: {user_id}")
        row.update(
            discord_user_id=discord_user_id,
            discord_handle=discord_handle,
            discord_verified=True,
            updated_at=self.clock.now().isoformat(),
        )

    async def clear_discord_identity(self, user_id: str) -> None:
        row = self._data[self.USERS].get(user_id)
        if row is None:
            return
        row.update(
            discord_user_id=None,
            discord_handle=None,
            discord_verified=False,
            updated_at=self.clock.now().isoformat(),
        )


# =============================================================================
# Factory
# =============================================================================


def create_local_storage(clock: Clock | None = None) -> InMemoryStore:
    """Create an empty in-memory store."""
    return InMemoryStore(clock)
