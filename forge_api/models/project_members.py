"""Project membership model keyed by (project, user)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field

from forge_api.core.time import utcnow
from forge_api.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class ProjectMember(QueryModel, table=True):
    """Membership row granting a user access to a project with a role."""

    __tablename__ = "project_members"  # pyright: ignore[reportAssignmentType]

    project_id: UUID = Field(
        foreign_key="projects.id",
        primary_key=True,
        ondelete="CASCADE",
    )
    user_id: UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    # Denormalized so member lists do not need a users join.
    username: str
    role_key: str = Field(default="member")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
