"""Project create, list, and snapshot endpoints, plus project invitations."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from forge_api.api.deps import SESSION_DEP, USER_DEP
from forge_api.schemas.invites import InviteCreate, InviteRead, ProjectInvitesRead
from forge_api.schemas.projects import ProjectCreate, ProjectSnapshot
from forge_api.services.invites import create_invite, list_project_invites
from forge_api.services.projects import create_project, get_project, list_projects_for_user

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from forge_api.models.users import User

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectSnapshot, status_code=status.HTTP_201_CREATED)
async def create_my_project(
    payload: ProjectCreate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> ProjectSnapshot:
    """Create a project owned by the caller."""
    return await create_project(session, actor=user, payload=payload)


@router.get("", response_model=list[ProjectSnapshot])
async def list_my_projects(
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> list[ProjectSnapshot]:
    """List snapshots of every project the caller is a member of."""
    return await list_projects_for_user(session, actor_id=user.id)


@router.get("/{project_id}", response_model=ProjectSnapshot)
async def read_project(
    project_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> ProjectSnapshot:
    """Return the project with its members and ordered tasks."""
    return await get_project(session, project_id=project_id, actor_id=user.id)


@router.post(
    "/{project_id}/invites",
    response_model=InviteRead,
    status_code=status.HTTP_201_CREATED,
    tags=["invites"],
)
async def invite_to_project(
    project_id: UUID,
    payload: InviteCreate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> InviteRead:
    """Invite a user to the project by username."""
    return await create_invite(session, project_id=project_id, actor_id=user.id, payload=payload)


@router.get("/{project_id}/invites", response_model=ProjectInvitesRead, tags=["invites"])
async def read_project_invites(
    project_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> ProjectInvitesRead:
    """List the project's most recent invitations grouped by status."""
    return await list_project_invites(session, project_id=project_id, actor_id=user.id)
