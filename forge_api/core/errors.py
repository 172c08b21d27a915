"""Service-layer error taxonomy mapped onto HTTP responses.

Services raise these instead of `HTTPException` so the same operations can be
driven from tests or other entrypoints. `detail` is always a short,
caller-safe message; storage details never leave the process.
"""

from __future__ import annotations

from typing import ClassVar

from fastapi import status


class ServiceError(Exception):
    """Base class for classified failures raised by services."""

    status_code: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: ClassVar[str] = "internal_error"
    default_detail: ClassVar[str] = "server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ServiceError):
    """Malformed or missing input, rejected before any store access."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_detail = "invalid request"


class NotFoundError(ServiceError):
    """Referenced entity is absent or not visible to the actor."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "not found"


class ForbiddenError(ServiceError):
    """Actor lacks membership in the project."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "not a project member"


class ConflictError(ServiceError):
    """Uniqueness violation or invalid state transition."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "conflict"


class InternalError(ServiceError):
    """Store or transport failure."""
