"""Project creation, listing, and full board snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import case, func
from sqlmodel import col, select

from forge_api.core.config import settings
from forge_api.core.errors import NotFoundError
from forge_api.core.logging import get_logger
from forge_api.db.transaction import transaction
from forge_api.models.project_members import ProjectMember
from forge_api.models.projects import Project
from forge_api.models.tasks import TASK_STATUSES, Task
from forge_api.models.users import User
from forge_api.schemas.projects import ProjectMemberRead, ProjectSnapshot
from forge_api.schemas.tasks import TaskRead
from forge_api.services.access import require_member

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from forge_api.schemas.projects import ProjectCreate

logger = get_logger(__name__)

OWNER_ROLE = "owner"

# Board display order; unknown statuses sort last.
_BUCKET_ORDER = case(
    {status: rank for rank, status in enumerate(TASK_STATUSES)},
    value=col(Task.status),
    else_=len(TASK_STATUSES),
)


async def _members_for(session: AsyncSession, project_id: UUID) -> list[ProjectMemberRead]:
    members = await (
        ProjectMember.objects.filter_by(project_id=project_id)
        .order_by(func.lower(col(ProjectMember.username)).asc(), col(ProjectMember.user_id))
        .all(session)
    )
    return [
        ProjectMemberRead(
            user_id=member.user_id,
            username=member.username,
            role_key=member.role_key,
        )
        for member in members
    ]


async def _tasks_for(session: AsyncSession, project_id: UUID) -> list[TaskRead]:
    statement = (
        select(Task, User.username)
        .outerjoin(User, col(User.id) == col(Task.assignee_id))
        .where(col(Task.project_id) == project_id)
        .order_by(_BUCKET_ORDER, col(Task.sort_index).asc(), col(Task.created_at).asc())
        .execution_options(populate_existing=True)
    )
    rows = (await session.exec(statement)).all()
    return [
        TaskRead(
            id=task.id,
            project_id=task.project_id,
            title=task.title,
            details=task.details,
            status=task.status,
            assignee_id=task.assignee_id,
            assignee_username=assignee_username,
            difficulty=task.difficulty,
            sort_index=task.sort_index,
            created_at=task.created_at,
        )
        for task, assignee_username in rows
    ]


async def build_project_snapshot(session: AsyncSession, project_id: UUID) -> ProjectSnapshot:
    """Project attributes plus members (by lowercase username) and ordered tasks.

    Tasks are ordered by bucket display order, then index, then creation time.
    """
    project = await Project.objects.by_id(project_id).first(session)
    if project is None:
        raise NotFoundError("project not found")
    return ProjectSnapshot(
        id=project.id,
        name=project.name,
        description=project.description,
        owner_id=project.owner_id,
        is_pinned=project.is_pinned,
        sort_index=project.sort_index,
        created_at=project.created_at,
        members=await _members_for(session, project.id),
        tasks=await _tasks_for(session, project.id),
    )


async def create_project(
    session: AsyncSession,
    *,
    actor: User,
    payload: ProjectCreate,
) -> ProjectSnapshot:
    """Create a project owned by `actor` along with the owner's membership."""
    async with transaction(
        session,
        operation="project.create",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        max_index = (
            await session.exec(
                select(func.max(col(Project.sort_index))).where(
                    col(Project.owner_id) == actor.id,
                ),
            )
        ).one()
        project = Project(
            name=payload.name,
            description=payload.description.strip(),
            owner_id=actor.id,
            sort_index=0 if max_index is None else max_index + 1,
        )
        session.add(project)
        await session.flush()
        session.add(
            ProjectMember(
                project_id=project.id,
                user_id=actor.id,
                username=actor.username,
                role_key=OWNER_ROLE,
            ),
        )
        await session.flush()
        snapshot = await build_project_snapshot(session, project.id)

    logger.info("project.create project_id=%s owner_id=%s", snapshot.id, snapshot.owner_id)
    return snapshot


async def list_projects_for_user(
    session: AsyncSession,
    *,
    actor_id: UUID,
) -> list[ProjectSnapshot]:
    """Snapshots of every project the actor belongs to."""
    async with transaction(
        session,
        operation="project.list",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        statement = (
            select(Project.id)
            .join(ProjectMember, col(ProjectMember.project_id) == col(Project.id))
            .where(col(ProjectMember.user_id) == actor_id)
            .order_by(
                col(Project.sort_index).asc(),
                col(Project.created_at).desc(),
                col(Project.name).asc(),
            )
        )
        project_ids = list((await session.exec(statement)).all())
        snapshots = [await build_project_snapshot(session, project_id) for project_id in project_ids]
    return snapshots


async def get_project(
    session: AsyncSession,
    *,
    project_id: UUID,
    actor_id: UUID,
) -> ProjectSnapshot:
    """Snapshot of one project, visible to members only."""
    async with transaction(
        session,
        operation="project.get",
        timeout_seconds=settings.db_timeout_light_seconds,
    ):
        await require_member(session, project_id=project_id, user_id=actor_id)
        return await build_project_snapshot(session, project_id)
