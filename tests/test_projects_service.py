# ruff: noqa: INP001
"""Project creation, membership-scoped listing, and board snapshots."""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from forge_api.core.errors import ForbiddenError, NotFoundError
from forge_api.models.users import User
from forge_api.schemas.projects import ProjectCreate
from forge_api.schemas.tasks import TaskCreate
from forge_api.services import projects
from forge_api.services.task_ordering import create_task


async def _make_session_maker() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _user(session: AsyncSession, username: str) -> User:
    user = User(subject=f"sub-{username}", username=username)
    session.add(user)
    await session.commit()
    return user


@pytest.mark.asyncio
async def test_create_project_adds_owner_membership_and_orders_per_owner() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        alice = await _user(session, "alice")

        first = await projects.create_project(
            session,
            actor=alice,
            payload=ProjectCreate(name="  Launch ", description="Q3 launch"),
        )
        second = await projects.create_project(
            session,
            actor=alice,
            payload=ProjectCreate(name="Ops"),
        )

        assert first.name == "Launch"
        assert first.owner_id == alice.id
        assert first.sort_index == 0
        assert second.sort_index == 1
        assert [(m.username, m.role_key) for m in first.members] == [("alice", "owner")]
        assert first.tasks == []


@pytest.mark.asyncio
async def test_snapshot_orders_tasks_by_bucket_then_index() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        alice = await _user(session, "alice")
        alice_id = alice.id
        project = await projects.create_project(
            session,
            actor=alice,
            payload=ProjectCreate(name="Launch"),
        )
        for title, status in (
            ("done-1", "done"),
            ("backlog-1", "backlog"),
            ("blocked-1", "blocked"),
            ("progress-1", "inProgress"),
            ("backlog-2", "backlog"),
        ):
            await create_task(
                session,
                project_id=project.id,
                actor_id=alice_id,
                payload=TaskCreate(title=title, status=status, assignee_id=alice_id),
            )

        snapshot = await projects.get_project(session, project_id=project.id, actor_id=alice_id)

        assert [task.title for task in snapshot.tasks] == [
            "backlog-1",
            "backlog-2",
            "progress-1",
            "blocked-1",
            "done-1",
        ]
        assert {task.assignee_username for task in snapshot.tasks} == {"alice"}


@pytest.mark.asyncio
async def test_list_projects_only_returns_memberships() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        alice = await _user(session, "alice")
        bob = await _user(session, "bob")
        bob_id = bob.id
        await projects.create_project(session, actor=alice, payload=ProjectCreate(name="A"))
        await projects.create_project(session, actor=bob, payload=ProjectCreate(name="B"))

        listed = await projects.list_projects_for_user(session, actor_id=bob_id)

        assert [project.name for project in listed] == ["B"]


@pytest.mark.asyncio
async def test_get_project_requires_membership() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        alice = await _user(session, "alice")
        mallory = await _user(session, "mallory")
        mallory_id: UUID = mallory.id
        project = await projects.create_project(
            session,
            actor=alice,
            payload=ProjectCreate(name="Launch"),
        )

        with pytest.raises(ForbiddenError):
            await projects.get_project(session, project_id=project.id, actor_id=mallory_id)


@pytest.mark.asyncio
async def test_snapshot_of_missing_project_is_not_found() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        with pytest.raises(NotFoundError):
            await projects.build_project_snapshot(session, uuid4())
