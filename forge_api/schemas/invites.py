"""Schemas for project invitation payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import Field, SQLModel

from forge_api.schemas.common import NonEmptyStr

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, NonEmptyStr)


class InviteCreate(SQLModel):
    """Payload for inviting an existing user to a project by username."""

    username: NonEmptyStr
    role_key: str = "member"


class InviteRead(SQLModel):
    """Invitation row as stored."""

    id: UUID
    project_id: UUID
    inviter_id: UUID
    invitee_id: UUID
    role_key: str
    status: str
    created_at: datetime
    responded_at: datetime | None = None


class InviteWithUsersRead(InviteRead):
    """Invitation row with inviter and invitee usernames for display."""

    inviter_username: str
    invitee_username: str


class ProjectInvitesRead(SQLModel):
    """A project's invitations grouped by status."""

    pending: list[InviteWithUsersRead] = Field(default_factory=list)
    declined: list[InviteWithUsersRead] = Field(default_factory=list)
    accepted: list[InviteWithUsersRead] = Field(default_factory=list)


class MyInviteRead(SQLModel):
    """Invitation addressed to the caller, with project and inviter names."""

    id: UUID
    project_id: UUID
    project_name: str
    inviter_id: UUID
    inviter_username: str
    role_key: str
    status: str
    created_at: datetime
