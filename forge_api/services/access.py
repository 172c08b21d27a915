"""Project membership guard consumed before any project-scoped operation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from forge_api.core.errors import ForbiddenError
from forge_api.models.project_members import ProjectMember

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


async def get_membership(
    session: AsyncSession,
    *,
    project_id: UUID,
    user_id: UUID,
) -> ProjectMember | None:
    """Fetch a membership row by project and user id."""
    return await ProjectMember.objects.filter_by(
        project_id=project_id,
        user_id=user_id,
    ).first(session)


async def is_member(session: AsyncSession, *, project_id: UUID, user_id: UUID) -> bool:
    """Return whether the user belongs to the project."""
    member = await get_membership(session, project_id=project_id, user_id=user_id)
    return member is not None


async def require_member(
    session: AsyncSession,
    *,
    project_id: UUID,
    user_id: UUID,
) -> ProjectMember:
    """Return the membership or raise `ForbiddenError`."""
    member = await get_membership(session, project_id=project_id, user_id=user_id)
    if member is None:
        raise ForbiddenError
    return member
