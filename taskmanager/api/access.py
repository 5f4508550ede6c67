"""
Access-check endpoints.

These let clients ask what the current user may do before showing edit,
delete or admin controls.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from taskmanager.auth import (
    Actor,
    require_admin,
    require_project_member,
    require_project_owner,
    require_super_admin,
)
from taskmanager.auth.routes import get_directory
from taskmanager.storage import UserDirectory

router = APIRouter(tags=["access"])


class ProjectAccessResponse(BaseModel):
    project_id: str
    user_id: str
    is_owner: bool
    is_personal: bool
    can_edit: bool
    can_delete: bool


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "taskmanager-api"}


@router.get("/api/projects/{project_id}/access", response_model=ProjectAccessResponse)
async def project_access(
    project_id: str,
    actor: Actor = Depends(require_project_member()),
    directory: UserDirectory = Depends(get_directory),
):
    """
    What the current user may do with a project.

    Personal projects cannot be edited, and only admins may delete them.
    """
    project = await directory.find_project_by_id(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    is_owner = project.is_owner(actor.id)
    return ProjectAccessResponse(
        project_id=project.id,
        user_id=actor.id,
        is_owner=is_owner,
        is_personal=project.is_personal,
        can_edit=not project.is_personal,
        can_delete=actor.is_admin or (is_owner and not project.is_personal),
    )


@router.get("/api/projects/{project_id}/ownership")
async def project_ownership(
    project_id: str,
    actor: Actor = Depends(require_project_owner()),
):
    return {"project_id": project_id, "owner_id": actor.id}


@router.get("/api/admin/check")
async def admin_check(actor: Actor = Depends(require_admin())):
    return {"admin": True, "user_id": actor.id}


@router.get("/api/admin/super")
async def super_admin_check(actor: Actor = Depends(require_super_admin())):
    return {"super_admin": True, "user_id": actor.id}
