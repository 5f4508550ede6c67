"""
Auth context - who is making the request, and what the resolver decided.

The resolver returns one of three values instead of raising:
    Resolved(actor)               the request may proceed
    Unauthenticated(reason, ...)  no usable identity (HTTP 401)
    Forbidden(reason, ...)        identity known, capability missing (HTTP 403)
"""

from __future__ import annotations

from dataclasses import dataclass

from taskmanager.auth.decoders import CredentialScheme
from taskmanager.auth.errors import FailureKind
from taskmanager.core.models import User


@dataclass(frozen=True)
class Actor:
    """
    The verified identity attached to a request.

    Usage in routes:
        async def my_route(actor: Actor = Depends(require_auth())):
            print(f"User {actor.id} via {actor.scheme.value}")
    """

    user: User
    scheme: CredentialScheme
    is_super_admin: bool = False

    @property
    def id(self) -> str:
        return self.user.id

    @property
    def email(self) -> str | None:
        return self.user.email

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin


@dataclass(frozen=True)
class Resolved:
    actor: Actor

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Unauthenticated:
    reason: FailureKind
    detail: str = "Authentication required"

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Forbidden:
    reason: FailureKind = FailureKind.INSUFFICIENT_CAPABILITY
    detail: str = "Access denied"

    @property
    def ok(self) -> bool:
        return False


AuthResult = Resolved | Unauthenticated | Forbidden
