"""User model mirrored from the external identity service."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, func
from sqlmodel import Field, col

from forge_api.core.time import utcnow
from forge_api.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class User(QueryModel, table=True):
    """Authenticated user, keyed internally by UUID and externally by subject."""

    __tablename__ = "users"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subject: str = Field(index=True, unique=True)
    username: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


# Invites look users up by lowercased username, so that lookup must be unambiguous.
Index("uq_users_username_lower", func.lower(col(User.username)), unique=True)
