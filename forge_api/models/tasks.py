"""Task model: a board item positioned within a (project, status) bucket."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index
from sqlmodel import Field

from forge_api.core.time import utcnow
from forge_api.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

# Display order of buckets on the board.
TASK_STATUSES = ("backlog", "inProgress", "blocked", "done")
DEFAULT_TASK_STATUS = "backlog"
DEFAULT_DIFFICULTY = 2
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5


class Task(QueryModel, table=True):
    """Project-scoped task with a dense per-bucket `sort_index`.

    `sort_index` values within one (project_id, status) pair always form
    `0..n-1`. That is maintained by `services.task_ordering`, not by a
    database constraint, since set-based shifts pass through duplicate
    values mid-statement.
    """

    __tablename__ = "tasks"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        Index("ix_tasks_project_status_sort", "project_id", "status", "sort_index"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")

    title: str
    details: str = Field(default="")
    status: str = Field(default=DEFAULT_TASK_STATUS)
    sort_index: int = Field(default=0)
    difficulty: int = Field(default=DEFAULT_DIFFICULTY)
    assignee_id: UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
        ondelete="SET NULL",
    )

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
