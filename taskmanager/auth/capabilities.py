"""
Capabilities and requirements.

This defines WHAT a request may need, not HOW we check it.
The actual checking happens in policies.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    """Permission levels a route can require."""

    AUTHENTICATED = "authenticated"    # Any resolved actor
    PROJECT_MEMBER = "project.member"  # Owner or listed member
    PROJECT_OWNER = "project.owner"    # The single owner
    ADMIN = "admin"                    # User.is_admin
    SUPER_ADMIN = "super_admin"        # The configured super-admin address


PROJECT_CAPABILITIES = frozenset({Capability.PROJECT_MEMBER, Capability.PROJECT_OWNER})


@dataclass(frozen=True)
class Requirement:
    """A capability, bound to a project where the capability needs one."""

    capability: Capability = Capability.AUTHENTICATED
    project_id: str | None = None

    def __post_init__(self):
        if self.capability in PROJECT_CAPABILITIES and not self.project_id:
            raise ValueError(f"{self.capability.value} requires a project_id")

    @classmethod
    def authenticated(cls) -> Requirement:
        return cls(Capability.AUTHENTICATED)

    @classmethod
    def project_member(cls, project_id: str) -> Requirement:
        return cls(Capability.PROJECT_MEMBER, project_id)

    @classmethod
    def project_owner(cls, project_id: str) -> Requirement:
        return cls(Capability.PROJECT_OWNER, project_id)

    @classmethod
    def admin(cls) -> Requirement:
        return cls(Capability.ADMIN)

    @classmethod
    def super_admin(cls) -> Requirement:
        return cls(Capability.SUPER_ADMIN)

    def __str__(self) -> str:
        if self.project_id:
            return f"{self.capability.value}({self.project_id})"
        return self.capability.value


def matches_super_admin(
    email: str | None,
    super_admin_email: str,
    case_sensitive: bool = False,
) -> bool:
    """
    Does this email belong to the super admin?

    Case-insensitive unless configured otherwise. An empty configured
    address matches nobody.
    """
    if not email or not super_admin_email:
        return False
    if case_sensitive:
        return email == super_admin_email
    return email.casefold() == super_admin_email.casefold()
