"""
Policies - capability evaluation and the route-facing interface.

Just use: `actor: Actor = Depends(require_project_member())`

Design:
- `Policy.check()` decides whether a resolved actor meets a requirement
- `require*()` return FastAPI dependencies that run the resolver
- Unauthenticated becomes 401, Forbidden becomes 403
"""

from __future__ import annotations

from typing import Callable

from fastapi import HTTPException, Request, status

from taskmanager.auth.capabilities import Capability, Requirement
from taskmanager.auth.context import Actor, AuthResult, Forbidden, Resolved, Unauthenticated
from taskmanager.auth.decoders import RequestCredentials
from taskmanager.auth.errors import FailureKind
from taskmanager.storage.base import UserDirectory


# =============================================================================
# Policy - the capability evaluator
# =============================================================================


class Policy:
    """
    Evaluate one requirement against a resolved actor.

    Project checks look at the owner first; the member list is only
    fetched for non-owners.
    """

    def __init__(self, requirement: Requirement, directory: UserDirectory):
        self.requirement = requirement
        self.directory = directory

    async def check(self, actor: Actor) -> Resolved | Forbidden:
        capability = self.requirement.capability

        if capability is Capability.AUTHENTICATED:
            return Resolved(actor)

        if capability is Capability.ADMIN:
            if actor.is_admin:
                return Resolved(actor)
            return Forbidden(detail="Admin access required")

        if capability is Capability.SUPER_ADMIN:
            if actor.is_super_admin:
                return Resolved(actor)
            return Forbidden(detail="Super admin access required")

        return await self._check_project(actor)

    async def _check_project(self, actor: Actor) -> Resolved | Forbidden:
        project_id = self.requirement.project_id
        project = await self.directory.find_project_by_id(project_id)
        if project is None:
            return Forbidden(detail="Project not found")

        if project.is_owner(actor.id):
            return Resolved(actor)

        if self.requirement.capability is Capability.PROJECT_OWNER:
            return Forbidden(detail="Only the project owner can do this")

        member_ids = await self.directory.list_project_member_ids(project_id)
        if actor.id in member_ids:
            return Resolved(actor)
        return Forbidden(detail="Not a member of this project")


# =============================================================================
# HTTP mapping
# =============================================================================


def raise_for_result(result: AuthResult) -> Actor:
    """Return the actor, or raise the HTTPException that fits the result."""
    if isinstance(result, Resolved):
        return result.actor

    if isinstance(result, Unauthenticated):
        detail = result.detail
        if result.reason is FailureKind.UNKNOWN_IDENTITY:
            detail = f"{detail}. Link your account to continue."
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": detail, "reason": result.reason.value},
            headers={"WWW-Authenticate": "Bearer"},
        )

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"error": result.detail, "reason": result.reason.value},
    )


# =============================================================================
# Main Interface - the require() family
# =============================================================================


def require(capability: Capability | str = Capability.AUTHENTICATED) -> Callable:
    """
    Require a capability to access a route.

    Usage:
        @app.get("/api/projects/{project_id}/access")
        async def access(
            project_id: str,
            actor: Actor = Depends(require("project.member")),
        ):
            return {"user": actor.id}

    Project capabilities take `project_id` from the path.
    """
    capability = Capability(capability)

    async def dependency(request: Request) -> Actor:
        project_id = request.path_params.get("project_id")
        try:
            requirement = Requirement(capability, project_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Project context required")

        resolver = request.app.state.resolver
        result = await resolver.resolve(RequestCredentials.from_request(request), requirement)
        return raise_for_result(result)

    return dependency


def require_auth() -> Callable:
    """Just require authentication, no specific capability."""
    return require(Capability.AUTHENTICATED)


def require_project_member() -> Callable:
    return require(Capability.PROJECT_MEMBER)


def require_project_owner() -> Callable:
    return require(Capability.PROJECT_OWNER)


def require_admin() -> Callable:
    return require(Capability.ADMIN)


def require_super_admin() -> Callable:
    return require(Capability.SUPER_ADMIN)
