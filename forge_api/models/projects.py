"""Project model: the container that owns tasks, members, and invites."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field

from forge_api.core.time import utcnow
from forge_api.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Project(QueryModel, table=True):
    """Collaborative board container with per-owner display ordering."""

    __tablename__ = "projects"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    description: str = Field(default="")
    owner_id: UUID = Field(foreign_key="users.id", index=True)
    is_pinned: bool = Field(default=False)
    sort_index: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
