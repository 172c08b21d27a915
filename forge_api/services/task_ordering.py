"""Ordered-task mutations keeping each (project, bucket) densely indexed.

Within one project and status bucket, task `sort_index` values always form
`0..n-1`. Every mutation here runs in a single deadline-bounded transaction:
it locks the affected bucket(s), shifts neighbours with one set-based
UPDATE per range, then writes the task itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, update
from sqlmodel import col, select

from forge_api.core.config import settings
from forge_api.core.errors import ConflictError, NotFoundError, ValidationError
from forge_api.core.logging import get_logger
from forge_api.core.time import utcnow
from forge_api.db.locks import lock_buckets
from forge_api.db.transaction import transaction
from forge_api.models.tasks import TASK_STATUSES, Task
from forge_api.models.users import User
from forge_api.schemas.tasks import TaskRead
from forge_api.services.access import is_member, require_member

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from forge_api.schemas.tasks import TaskCreate, TaskUpdate

logger = get_logger(__name__)


async def bucket_size(session: AsyncSession, *, project_id: UUID, status: str) -> int:
    """Count tasks currently in one bucket."""
    statement = (
        select(func.count(col(Task.id)))
        .where(col(Task.project_id) == project_id)
        .where(col(Task.status) == status)
    )
    return int((await session.exec(statement)).one())


async def _shift(
    session: AsyncSession,
    *,
    project_id: UUID,
    status: str,
    delta: int,
    lower: int | None = None,
    upper: int | None = None,
) -> None:
    """Add `delta` to every index in `[lower, upper]` of one bucket."""
    statement = (
        update(Task)
        .where(col(Task.project_id) == project_id)
        .where(col(Task.status) == status)
    )
    if lower is not None:
        statement = statement.where(col(Task.sort_index) >= lower)
    if upper is not None:
        statement = statement.where(col(Task.sort_index) <= upper)
    statement = statement.values(sort_index=col(Task.sort_index) + delta).execution_options(
        synchronize_session=False,
    )
    await session.exec(statement)


async def _load_task(
    session: AsyncSession,
    *,
    project_id: UUID,
    task_id: UUID,
    for_update: bool = False,
) -> Task:
    statement = (
        select(Task)
        .where(col(Task.id) == task_id)
        .where(col(Task.project_id) == project_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        statement = statement.with_for_update()
    task = (await session.exec(statement)).first()
    if task is None:
        raise NotFoundError("task not found")
    return task


async def _lock_task(
    session: AsyncSession,
    *,
    project_id: UUID,
    task_id: UUID,
    target_status: str | None = None,
) -> Task:
    """Lock the task's bucket (and `target_status`'s) and return the locked row."""
    task = await _load_task(session, project_id=project_id, task_id=task_id)
    current_status = task.status
    await lock_buckets(session, project_id, current_status, target_status or current_status)
    task = await _load_task(session, project_id=project_id, task_id=task_id, for_update=True)
    if task.status != current_status:
        raise ConflictError("task was moved concurrently")
    return task


async def _validate_assignee(
    session: AsyncSession,
    *,
    project_id: UUID,
    assignee_id: UUID | None,
) -> None:
    if assignee_id is None:
        return
    if not await is_member(session, project_id=project_id, user_id=assignee_id):
        raise ValidationError("assignee is not a project member")


async def _username_for(session: AsyncSession, user_id: UUID | None) -> str | None:
    if user_id is None:
        return None
    statement = select(User.username).where(col(User.id) == user_id)
    return (await session.exec(statement)).first()


def _to_read(task: Task, assignee_username: str | None) -> TaskRead:
    return TaskRead(
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


async def create_task(
    session: AsyncSession,
    *,
    project_id: UUID,
    actor_id: UUID,
    payload: TaskCreate,
) -> TaskRead:
    """Insert a task into its bucket, appending unless an index is requested.

    A requested index past the end of the bucket is clamped to an append.
    """
    async with transaction(
        session,
        operation="task.create",
        timeout_seconds=settings.db_timeout_light_seconds,
    ):
        await require_member(session, project_id=project_id, user_id=actor_id)
        await _validate_assignee(session, project_id=project_id, assignee_id=payload.assignee_id)
        await lock_buckets(session, project_id, payload.status)

        count = await bucket_size(session, project_id=project_id, status=payload.status)
        if payload.sort_index is None or payload.sort_index >= count:
            sort_index = count
        else:
            sort_index = payload.sort_index
            await _shift(
                session,
                project_id=project_id,
                status=payload.status,
                delta=1,
                lower=sort_index,
            )

        task = Task(
            project_id=project_id,
            title=payload.title,
            details=payload.details,
            status=payload.status,
            sort_index=sort_index,
            difficulty=payload.difficulty,
            assignee_id=payload.assignee_id,
        )
        session.add(task)
        await session.flush()
        assignee_username = await _username_for(session, task.assignee_id)
        result = _to_read(task, assignee_username)

    logger.info(
        "task.create project_id=%s task_id=%s status=%s sort_index=%s",
        project_id,
        result.id,
        result.status,
        result.sort_index,
    )
    return result


async def move_or_update_task(
    session: AsyncSession,
    *,
    project_id: UUID,
    task_id: UUID,
    actor_id: UUID,
    payload: TaskUpdate,
) -> TaskRead:
    """Reposition a task and/or update its details, difficulty, or assignee.

    Only fields present in `payload` are applied. A bucket change without an
    index appends to the destination bucket. Requested indexes are clamped to
    the last valid slot.
    """
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("no fields to update")
    target_status = changes.get("status")
    if target_status is not None and target_status not in TASK_STATUSES:
        raise ValidationError("unknown status")

    async with transaction(
        session,
        operation="task.update",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        await require_member(session, project_id=project_id, user_id=actor_id)
        if "assignee_id" in changes:
            await _validate_assignee(
                session,
                project_id=project_id,
                assignee_id=changes["assignee_id"],
            )
        task = await _lock_task(
            session,
            project_id=project_id,
            task_id=task_id,
            target_status=target_status,
        )
        old_status = task.status
        old_index = task.sort_index
        new_status = target_status or old_status
        requested_index = changes.get("sort_index")
        moved = False

        if new_status == old_status:
            if requested_index is not None:
                last = await bucket_size(session, project_id=project_id, status=old_status) - 1
                new_index = min(requested_index, last)
                if new_index > old_index:
                    await _shift(
                        session,
                        project_id=project_id,
                        status=old_status,
                        delta=-1,
                        lower=old_index + 1,
                        upper=new_index,
                    )
                elif new_index < old_index:
                    await _shift(
                        session,
                        project_id=project_id,
                        status=old_status,
                        delta=1,
                        lower=new_index,
                        upper=old_index - 1,
                    )
                if new_index != old_index:
                    task.sort_index = new_index
                    moved = True
        else:
            size = await bucket_size(session, project_id=project_id, status=new_status)
            new_index = size if requested_index is None else min(requested_index, size)
            await _shift(
                session,
                project_id=project_id,
                status=old_status,
                delta=-1,
                lower=old_index + 1,
            )
            await _shift(
                session,
                project_id=project_id,
                status=new_status,
                delta=1,
                lower=new_index,
            )
            task.status = new_status
            task.sort_index = new_index
            moved = True

        if "details" in changes and changes["details"] is not None:
            task.details = changes["details"]
        if "difficulty" in changes and changes["difficulty"] is not None:
            task.difficulty = changes["difficulty"]
        if "assignee_id" in changes:
            task.assignee_id = changes["assignee_id"]
        task.updated_at = utcnow()
        session.add(task)
        await session.flush()
        assignee_username = await _username_for(session, task.assignee_id)
        result = _to_read(task, assignee_username)

    if moved:
        logger.info(
            "task.move project_id=%s task_id=%s from=%s:%s to=%s:%s",
            project_id,
            task_id,
            old_status,
            old_index,
            result.status,
            result.sort_index,
        )
    else:
        logger.info("task.update project_id=%s task_id=%s", project_id, task_id)
    return result


async def delete_task(
    session: AsyncSession,
    *,
    project_id: UUID,
    task_id: UUID,
    actor_id: UUID,
) -> str:
    """Delete a task, close the gap it leaves, and return its bucket name."""
    async with transaction(
        session,
        operation="task.delete",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        await require_member(session, project_id=project_id, user_id=actor_id)
        task = await _lock_task(session, project_id=project_id, task_id=task_id)
        status = task.status
        sort_index = task.sort_index
        await session.delete(task)
        await session.flush()
        await _shift(
            session,
            project_id=project_id,
            status=status,
            delta=-1,
            lower=sort_index + 1,
        )

    logger.info(
        "task.delete project_id=%s task_id=%s status=%s sort_index=%s",
        project_id,
        task_id,
        status,
        sort_index,
    )
    return status
