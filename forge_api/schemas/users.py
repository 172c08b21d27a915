"""User payload schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class UserRead(SQLModel):
    """Authenticated user as seen by the API."""

    id: UUID
    username: str
    created_at: datetime
