"""Endpoints for the authenticated user's own profile."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from forge_api.api.deps import USER_DEP
from forge_api.schemas.users import UserRead

if TYPE_CHECKING:
    from forge_api.models.users import User

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
async def read_me(user: User = USER_DEP) -> UserRead:
    """Return the authenticated user."""
    return UserRead(id=user.id, username=user.username, created_at=user.created_at)
