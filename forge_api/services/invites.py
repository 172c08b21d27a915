"""Invitation lifecycle and the atomic invitation-to-membership conversion.

An invitation starts `pending`. Declining keeps the row and stamps
`responded_at`. Accepting creates the membership and deletes the
invitation in the same transaction, so an invitation can be consumed at
most once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, func, update
from sqlalchemy.orm import aliased
from sqlmodel import col, select

from forge_api.core.config import settings
from forge_api.core.errors import ConflictError, NotFoundError, ValidationError
from forge_api.core.logging import get_logger
from forge_api.core.time import utcnow
from forge_api.db.crud import insert_ignore
from forge_api.db.transaction import transaction
from forge_api.models.project_invites import (
    INVITE_ACCEPTED,
    INVITE_DECLINED,
    INVITE_PENDING,
    INVITE_STATUSES,
    ProjectInvite,
)
from forge_api.models.project_members import ProjectMember
from forge_api.models.projects import Project
from forge_api.models.users import User
from forge_api.schemas.invites import (
    InviteRead,
    InviteWithUsersRead,
    MyInviteRead,
    ProjectInvitesRead,
)
from forge_api.services.access import is_member, require_member
from forge_api.services.projects import build_project_snapshot

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from forge_api.schemas.invites import InviteCreate
    from forge_api.schemas.projects import ProjectSnapshot

logger = get_logger(__name__)

INVITE_LIST_LIMIT = 50
# Inviters may withdraw a pending invitation or clean up a declined one.
DELETABLE_INVITE_STATUSES = (INVITE_PENDING, INVITE_DECLINED)


def _invite_read(invite: ProjectInvite) -> InviteRead:
    return InviteRead(
        id=invite.id,
        project_id=invite.project_id,
        inviter_id=invite.inviter_id,
        invitee_id=invite.invitee_id,
        role_key=invite.role_key,
        status=invite.status,
        created_at=invite.created_at,
        responded_at=invite.responded_at,
    )


async def _user_by_username(session: AsyncSession, username: str) -> User | None:
    return await User.objects.filter(
        func.lower(col(User.username)) == username.strip().lower(),
    ).first(session)


async def create_invite(
    session: AsyncSession,
    *,
    project_id: UUID,
    actor_id: UUID,
    payload: InviteCreate,
) -> InviteRead:
    """Invite an existing user, found by case-insensitive username, to a project."""
    async with transaction(
        session,
        operation="invite.create",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        invitee = await _user_by_username(session, payload.username)
        if invitee is None:
            raise NotFoundError("user not found")
        if invitee.id == actor_id:
            raise ConflictError("cannot invite yourself")
        await require_member(session, project_id=project_id, user_id=actor_id)
        if await is_member(session, project_id=project_id, user_id=invitee.id):
            raise ConflictError("user is already a member")
        existing = await ProjectInvite.objects.filter_by(
            project_id=project_id,
            invitee_id=invitee.id,
            status=INVITE_PENDING,
        ).first(session)
        if existing is not None:
            raise ConflictError("invite already exists")

        invite = ProjectInvite(
            project_id=project_id,
            inviter_id=actor_id,
            invitee_id=invitee.id,
            role_key=payload.role_key.strip() or "member",
        )
        session.add(invite)
        # Concurrent duplicates surface here through the pending-invite unique index.
        await session.flush()
        result = _invite_read(invite)

    logger.info(
        "invite.create invite_id=%s project_id=%s inviter_id=%s invitee_id=%s",
        result.id,
        project_id,
        actor_id,
        result.invitee_id,
    )
    return result


async def list_project_invites(
    session: AsyncSession,
    *,
    project_id: UUID,
    actor_id: UUID,
) -> ProjectInvitesRead:
    """Newest invitations of a project grouped by status, for members only."""
    inviter = aliased(User)
    invitee = aliased(User)
    async with transaction(
        session,
        operation="invite.list_project",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        await require_member(session, project_id=project_id, user_id=actor_id)
        statement = (
            select(ProjectInvite, inviter.username, invitee.username)
            .join(inviter, inviter.id == col(ProjectInvite.inviter_id))
            .join(invitee, invitee.id == col(ProjectInvite.invitee_id))
            .where(col(ProjectInvite.project_id) == project_id)
            .order_by(col(ProjectInvite.created_at).desc())
            .limit(INVITE_LIST_LIMIT)
            .execution_options(populate_existing=True)
        )
        rows = (await session.exec(statement)).all()

    grouped = ProjectInvitesRead()
    buckets = {
        INVITE_PENDING: grouped.pending,
        INVITE_DECLINED: grouped.declined,
        INVITE_ACCEPTED: grouped.accepted,
    }
    for invite, inviter_username, invitee_username in rows:
        bucket = buckets.get(invite.status)
        if bucket is None:
            continue
        bucket.append(
            InviteWithUsersRead(
                **_invite_read(invite).model_dump(),
                inviter_username=inviter_username,
                invitee_username=invitee_username,
            ),
        )
    return grouped


async def list_my_invites(
    session: AsyncSession,
    *,
    actor_id: UUID,
    status: str | None = None,
) -> list[MyInviteRead]:
    """Invitations addressed to the actor with the given status (pending by default)."""
    status = (status or "").strip() or INVITE_PENDING
    if status not in INVITE_STATUSES:
        raise ValidationError("invalid status")
    async with transaction(
        session,
        operation="invite.list_mine",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        statement = (
            select(ProjectInvite, Project.name, User.username)
            .join(Project, col(Project.id) == col(ProjectInvite.project_id))
            .join(User, col(User.id) == col(ProjectInvite.inviter_id))
            .where(col(ProjectInvite.invitee_id) == actor_id)
            .where(col(ProjectInvite.status) == status)
            .order_by(col(ProjectInvite.created_at).desc())
            .limit(INVITE_LIST_LIMIT)
            .execution_options(populate_existing=True)
        )
        rows = (await session.exec(statement)).all()
    return [
        MyInviteRead(
            id=invite.id,
            project_id=invite.project_id,
            project_name=project_name,
            inviter_id=invite.inviter_id,
            inviter_username=inviter_username,
            role_key=invite.role_key,
            status=invite.status,
            created_at=invite.created_at,
        )
        for invite, project_name, inviter_username in rows
    ]


async def accept_invite(
    session: AsyncSession,
    *,
    invite_id: UUID,
    actor_id: UUID,
) -> ProjectSnapshot:
    """Convert a pending invitation into a membership and return the project.

    Invitation delete and membership insert commit together or not at all.
    The delete is conditional on the row still being pending, so of two
    concurrent accepts only one can consume it. The membership insert is
    idempotent, so a pre-existing membership is kept.
    """
    async with transaction(
        session,
        operation="invite.accept",
        timeout_seconds=settings.db_timeout_heavy_seconds,
    ):
        invite = await (
            ProjectInvite.objects.filter_by(id=invite_id, invitee_id=actor_id)
            .for_update()
            .first(session)
        )
        if invite is None:
            raise NotFoundError("invite not found")
        if invite.status != INVITE_PENDING:
            raise ConflictError("invite not pending")
        project_id = invite.project_id
        role_key = invite.role_key

        username = (
            await session.exec(select(User.username).where(col(User.id) == actor_id))
        ).first()
        if username is None:
            raise NotFoundError("user not found")

        # Consuming the row is what makes the invitation single-use.
        consumed = await session.exec(
            delete(ProjectInvite)
            .where(col(ProjectInvite.id) == invite_id)
            .where(col(ProjectInvite.invitee_id) == actor_id)
            .where(col(ProjectInvite.status) == INVITE_PENDING)
            .execution_options(synchronize_session=False),
        )
        if consumed.rowcount == 0:
            raise NotFoundError("invite not found")
        session.expunge(invite)

        created = await insert_ignore(
            session,
            ProjectMember,
            {
                "project_id": project_id,
                "user_id": actor_id,
                "username": username,
                "role_key": role_key,
                "created_at": utcnow(),
            },
            conflict_columns=("project_id", "user_id"),
        )
        snapshot = await build_project_snapshot(session, project_id)

    logger.info(
        "invite.accept invite_id=%s project_id=%s user_id=%s membership_created=%s",
        invite_id,
        project_id,
        actor_id,
        created,
    )
    return snapshot


async def decline_invite(
    session: AsyncSession,
    *,
    invite_id: UUID,
    actor_id: UUID,
) -> None:
    """Mark a pending invitation addressed to the actor as declined."""
    async with transaction(
        session,
        operation="invite.decline",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        statement = (
            update(ProjectInvite)
            .where(col(ProjectInvite.id) == invite_id)
            .where(col(ProjectInvite.invitee_id) == actor_id)
            .where(col(ProjectInvite.status) == INVITE_PENDING)
            .values(status=INVITE_DECLINED, responded_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await session.exec(statement)
        if result.rowcount == 0:
            raise NotFoundError("invite not found")
    logger.info("invite.decline invite_id=%s user_id=%s", invite_id, actor_id)


async def delete_invite(
    session: AsyncSession,
    *,
    invite_id: UUID,
    actor_id: UUID,
) -> None:
    """Let the inviter withdraw a pending invitation or remove a declined one."""
    async with transaction(
        session,
        operation="invite.delete",
        timeout_seconds=settings.db_timeout_default_seconds,
    ):
        statement = (
            delete(ProjectInvite)
            .where(col(ProjectInvite.id) == invite_id)
            .where(col(ProjectInvite.inviter_id) == actor_id)
            .where(col(ProjectInvite.status).in_(DELETABLE_INVITE_STATUSES))
            .execution_options(synchronize_session=False)
        )
        result = await session.exec(statement)
        if result.rowcount == 0:
            raise NotFoundError("invite not found")
    logger.info("invite.delete invite_id=%s user_id=%s", invite_id, actor_id)
