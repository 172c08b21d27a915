"""Transaction-scoped locks serializing structural changes to one bucket."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select

from forge_api.db.crud import dialect_name
from forge_api.models.tasks import TASK_STATUSES, Task

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


def bucket_lock_key(project_id: UUID, status: str) -> int:
    """Stable signed 64-bit advisory-lock key for a (project, bucket) pair."""
    digest = hashlib.sha256(f"tasks:{project_id}:{status}".encode()).digest()
    value = int.from_bytes(digest[:8], byteorder="big", signed=False)
    # Postgres advisory locks take a signed bigint.
    if value > 2**63 - 1:
        value -= 2**64
    return value


def _bucket_rank(status: str) -> int:
    return TASK_STATUSES.index(status) if status in TASK_STATUSES else len(TASK_STATUSES)


async def lock_buckets(
    session: AsyncSession,
    project_id: UUID,
    *statuses: str,
) -> None:
    """Serialize against other structural mutations of the given buckets.

    On PostgreSQL an advisory lock per bucket covers empty buckets too, then
    the bucket rows are read `FOR UPDATE`. Buckets are always locked in board
    order so cross-bucket moves cannot deadlock each other. SQLite has no
    row locks; there the engine opens every transaction with `BEGIN IMMEDIATE`
    (see `db.session`), so the whole database is already held.
    """
    ordered = sorted(set(statuses), key=lambda status: (_bucket_rank(status), status))
    use_advisory = dialect_name(session) == "postgresql"
    for status in ordered:
        if use_advisory:
            await session.exec(
                select(func.pg_advisory_xact_lock(bucket_lock_key(project_id, status))),
            )
        await session.exec(
            select(Task.id)
            .where(col(Task.project_id) == project_id)
            .where(col(Task.status) == status)
            .order_by(col(Task.sort_index).asc(), col(Task.id).asc())
            .with_for_update(),
        )
