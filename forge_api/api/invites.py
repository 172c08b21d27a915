"""Invitation endpoints for the invitee (accept, decline, list) and inviter (delete)."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query

from forge_api.api.deps import SESSION_DEP, USER_DEP
from forge_api.schemas.common import OkResponse
from forge_api.schemas.invites import MyInviteRead
from forge_api.schemas.projects import ProjectSnapshot
from forge_api.services.invites import (
    accept_invite,
    decline_invite,
    delete_invite,
    list_my_invites,
)

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from forge_api.models.users import User

router = APIRouter(prefix="/invites", tags=["invites"])
STATUS_QUERY = Query(default=None)


@router.get("/me", response_model=list[MyInviteRead])
async def list_invites_for_me(
    status: str | None = STATUS_QUERY,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> list[MyInviteRead]:
    """List invitations addressed to the caller, pending by default."""
    return await list_my_invites(session, actor_id=user.id, status=status)


@router.post("/{invite_id}/accept", response_model=ProjectSnapshot)
async def accept_my_invite(
    invite_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> ProjectSnapshot:
    """Accept an invitation and return the joined project's snapshot."""
    return await accept_invite(session, invite_id=invite_id, actor_id=user.id)


@router.post("/{invite_id}/decline", response_model=OkResponse)
async def decline_my_invite(
    invite_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> OkResponse:
    """Decline a pending invitation."""
    await decline_invite(session, invite_id=invite_id, actor_id=user.id)
    return OkResponse()


@router.delete("/{invite_id}", response_model=OkResponse)
async def delete_sent_invite(
    invite_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> OkResponse:
    """Withdraw or clean up an invitation the caller sent."""
    await delete_invite(session, invite_id=invite_id, actor_id=user.id)
    return OkResponse()
