"""Schemas for task create/update/read payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Self
from uuid import UUID

from pydantic import field_validator, model_validator
from sqlmodel import Field, SQLModel

from forge_api.models.tasks import DEFAULT_DIFFICULTY, MAX_DIFFICULTY, MIN_DIFFICULTY
from forge_api.schemas.common import NonEmptyStr

TaskStatus = Literal["backlog", "inProgress", "blocked", "done"]
RUNTIME_ANNOTATION_TYPES = (datetime, UUID, NonEmptyStr)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _strip(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


class TaskCreate(SQLModel):
    """Payload for creating a task, optionally at a given bucket position."""

    title: NonEmptyStr
    details: str = ""
    status: TaskStatus = "backlog"
    assignee_id: UUID | None = None
    difficulty: int = Field(default=DEFAULT_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    sort_index: int | None = Field(default=None, ge=0)

    @field_validator("details", mode="before")
    @classmethod
    def _strip_details(cls, value: object) -> object:
        return _strip(value)

    @field_validator("assignee_id", mode="before")
    @classmethod
    def _normalize_assignee(cls, value: object) -> object:
        return _blank_to_none(value)


class TaskUpdate(SQLModel):
    """Partial task update; only fields present in the payload are applied.

    `assignee_id` is tri-state: omitted leaves the assignee unchanged, `null`
    or an empty string clears it, and a user id sets it.
    """

    details: str | None = None
    status: TaskStatus | None = None
    assignee_id: UUID | None = None
    difficulty: int | None = Field(default=None, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    sort_index: int | None = Field(default=None, ge=0)

    @field_validator("details", mode="before")
    @classmethod
    def _strip_details(cls, value: object) -> object:
        return _strip(value)

    @field_validator("assignee_id", mode="before")
    @classmethod
    def _normalize_assignee(cls, value: object) -> object:
        return _blank_to_none(value)

    @model_validator(mode="after")
    def _require_changes(self) -> Self:
        if not self.model_fields_set:
            raise ValueError("no fields to update")
        return self


class TaskRead(SQLModel):
    """Task payload joined with the assignee's username."""

    id: UUID
    project_id: UUID
    title: str
    details: str
    status: str
    assignee_id: UUID | None = None
    assignee_username: str | None = None
    difficulty: int
    sort_index: int
    created_at: datetime


class TaskDeleteResponse(SQLModel):
    """Bucket the deleted task was removed from."""

    status: str
