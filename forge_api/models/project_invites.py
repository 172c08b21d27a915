"""Project invitation model and lifecycle constants."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field

from forge_api.core.time import utcnow
from forge_api.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

INVITE_PENDING = "pending"
INVITE_ACCEPTED = "accepted"
INVITE_DECLINED = "declined"
INVITE_STATUSES = (INVITE_PENDING, INVITE_ACCEPTED, INVITE_DECLINED)

_PENDING_ONLY = text("status = 'pending'")


class ProjectInvite(QueryModel, table=True):
    """Proposed membership awaiting the invitee's accept or decline."""

    __tablename__ = "project_invites"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        Index(
            "uq_project_invites_pending_invitee",
            "project_id",
            "invitee_id",
            unique=True,
            postgresql_where=_PENDING_ONLY,
            sqlite_where=_PENDING_ONLY,
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")
    inviter_id: UUID = Field(foreign_key="users.id", index=True)
    invitee_id: UUID = Field(foreign_key="users.id", index=True)
    role_key: str = Field(default="member")
    status: str = Field(default=INVITE_PENDING, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    responded_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
