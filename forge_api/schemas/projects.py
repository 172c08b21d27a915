"""Schemas for project create payloads and full board snapshots."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import Field, SQLModel

from forge_api.schemas.common import NonEmptyStr
from forge_api.schemas.tasks import TaskRead

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, NonEmptyStr, TaskRead)


class ProjectCreate(SQLModel):
    """Payload for creating a project owned by the caller."""

    name: NonEmptyStr
    description: str = ""


class ProjectMemberRead(SQLModel):
    """Member entry embedded in a project snapshot."""

    user_id: UUID
    username: str
    role_key: str


class ProjectSnapshot(SQLModel):
    """Project attributes with its full member list and ordered task list."""

    id: UUID
    name: str
    description: str
    owner_id: UUID
    is_pinned: bool
    sort_index: int
    created_at: datetime
    members: list[ProjectMemberRead] = Field(default_factory=list)
    tasks: list[TaskRead] = Field(default_factory=list)
