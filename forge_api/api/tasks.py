"""Task create, move/update, and delete endpoints scoped to a project."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from forge_api.api.deps import SESSION_DEP, USER_DEP
from forge_api.schemas.tasks import TaskCreate, TaskDeleteResponse, TaskRead, TaskUpdate
from forge_api.services.task_ordering import create_task, delete_task, move_or_update_task

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from forge_api.models.users import User

router = APIRouter(prefix="/projects/{project_id}/tasks", tags=["tasks"])


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_project_task(
    project_id: UUID,
    payload: TaskCreate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> TaskRead:
    """Create a task in a bucket, appending unless `sort_index` is given."""
    return await create_task(session, project_id=project_id, actor_id=user.id, payload=payload)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_project_task(
    project_id: UUID,
    task_id: UUID,
    payload: TaskUpdate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> TaskRead:
    """Move a task within or across buckets and/or update its fields."""
    return await move_or_update_task(
        session,
        project_id=project_id,
        task_id=task_id,
        actor_id=user.id,
        payload=payload,
    )


@router.delete("/{task_id}", response_model=TaskDeleteResponse)
async def delete_project_task(
    project_id: UUID,
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> TaskDeleteResponse:
    """Delete a task and report the bucket it was removed from."""
    bucket = await delete_task(session, project_id=project_id, task_id=task_id, actor_id=user.id)
    return TaskDeleteResponse(status=bucket)
