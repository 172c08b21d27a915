# ruff: noqa: INP001
"""Dense per-bucket ordering across task create, move, and delete."""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from forge_api.core.errors import ForbiddenError, NotFoundError, ValidationError
from forge_api.db.session import build_engine
from forge_api.models.project_members import ProjectMember
from forge_api.models.projects import Project
from forge_api.models.tasks import Task
from forge_api.models.users import User
from forge_api.schemas.tasks import TaskCreate, TaskUpdate
from forge_api.services.task_ordering import create_task, delete_task, move_or_update_task


async def _make_session_maker() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _seed_project(session: AsyncSession, *usernames: str) -> tuple[UUID, list[UUID]]:
    users = [User(subject=f"sub-{name}", username=name) for name in usernames or ("alice",)]
    session.add_all(users)
    await session.flush()
    project = Project(name="Launch", owner_id=users[0].id)
    session.add(project)
    await session.flush()
    for user in users:
        session.add(
            ProjectMember(project_id=project.id, user_id=user.id, username=user.username),
        )
    await session.commit()
    return project.id, [user.id for user in users]


async def _bucket(session: AsyncSession, project_id: UUID, status: str) -> list[tuple[str, int]]:
    statement = (
        select(Task.title, Task.sort_index)
        .where(col(Task.project_id) == project_id)
        .where(col(Task.status) == status)
        .order_by(col(Task.sort_index).asc())
    )
    return [(title, sort_index) for title, sort_index in (await session.exec(statement)).all()]


def _assert_dense(rows: list[tuple[str, int]]) -> None:
    assert [sort_index for _, sort_index in rows] == list(range(len(rows)))


async def _add(session: AsyncSession, project_id: UUID, user_id: UUID, title: str, **kwargs):
    return await create_task(
        session,
        project_id=project_id,
        actor_id=user_id,
        payload=TaskCreate(title=title, **kwargs),
    )


@pytest.mark.asyncio
async def test_create_appends_to_bucket_by_default() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        first = await _add(session, project, alice, "T0")
        await _add(session, project, alice, "T1")
        await _add(session, project, alice, "Other", status="done")
        await _add(session, project, alice, "T2")

        assert first.sort_index == 0
        assert first.difficulty == 2
        assert await _bucket(session, project, "backlog") == [("T0", 0), ("T1", 1), ("T2", 2)]
        assert await _bucket(session, project, "done") == [("Other", 0)]


@pytest.mark.asyncio
async def test_create_at_index_shifts_following_tasks() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        for title in ("T0", "T1", "T2"):
            await _add(session, project, alice, title)

        created = await _add(session, project, alice, "New", sort_index=1)

        assert created.sort_index == 1
        assert await _bucket(session, project, "backlog") == [
            ("T0", 0),
            ("New", 1),
            ("T1", 2),
            ("T2", 3),
        ]


@pytest.mark.asyncio
async def test_create_beyond_count_is_clamped_to_append() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        await _add(session, project, alice, "T0")

        created = await _add(session, project, alice, "Far", sort_index=40)

        assert created.sort_index == 1
        _assert_dense(await _bucket(session, project, "backlog"))


@pytest.mark.asyncio
async def test_move_last_task_to_front_reorders_bucket() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        await _add(session, project, alice, "T0")
        await _add(session, project, alice, "T1")
        t2 = await _add(session, project, alice, "T2")

        moved = await move_or_update_task(
            session,
            project_id=project,
            task_id=t2.id,
            actor_id=alice,
            payload=TaskUpdate(sort_index=0),
        )

        assert moved.sort_index == 0
        assert await _bucket(session, project, "backlog") == [("T2", 0), ("T0", 1), ("T1", 2)]


@pytest.mark.asyncio
async def test_move_forward_within_bucket_and_clamp_to_last_slot() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        t0 = await _add(session, project, alice, "T0")
        await _add(session, project, alice, "T1")
        await _add(session, project, alice, "T2")

        moved = await move_or_update_task(
            session,
            project_id=project,
            task_id=t0.id,
            actor_id=alice,
            payload=TaskUpdate(sort_index=99),
        )

        assert moved.sort_index == 2
        assert await _bucket(session, project, "backlog") == [("T1", 0), ("T2", 1), ("T0", 2)]


@pytest.mark.asyncio
async def test_move_to_current_position_changes_nothing() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        await _add(session, project, alice, "T0")
        t1 = await _add(session, project, alice, "T1")
        await _add(session, project, alice, "T2")
        before = await _bucket(session, project, "backlog")

        await move_or_update_task(
            session,
            project_id=project,
            task_id=t1.id,
            actor_id=alice,
            payload=TaskUpdate(status="backlog", sort_index=1),
        )

        assert await _bucket(session, project, "backlog") == before


@pytest.mark.asyncio
async def test_cross_bucket_move_keeps_both_buckets_dense() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        await _add(session, project, alice, "B0")
        b1 = await _add(session, project, alice, "B1")
        await _add(session, project, alice, "B2")
        await _add(session, project, alice, "P0", status="inProgress")
        await _add(session, project, alice, "P1", status="inProgress")

        moved = await move_or_update_task(
            session,
            project_id=project,
            task_id=b1.id,
            actor_id=alice,
            payload=TaskUpdate(status="inProgress", sort_index=1),
        )

        assert moved.status == "inProgress"
        assert moved.sort_index == 1
        assert await _bucket(session, project, "backlog") == [("B0", 0), ("B2", 1)]
        assert await _bucket(session, project, "inProgress") == [
            ("P0", 0),
            ("B1", 1),
            ("P1", 2),
        ]


@pytest.mark.asyncio
async def test_bucket_change_without_index_appends() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        task = await _add(session, project, alice, "B0")
        await _add(session, project, alice, "D0", status="done")

        moved = await move_or_update_task(
            session,
            project_id=project,
            task_id=task.id,
            actor_id=alice,
            payload=TaskUpdate(status="done"),
        )

        assert moved.sort_index == 1
        assert await _bucket(session, project, "backlog") == []
        assert await _bucket(session, project, "done") == [("D0", 0), ("B0", 1)]


@pytest.mark.asyncio
async def test_update_fields_and_assignee_modes() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice, bob) = await _seed_project(session, "alice", "bob")
        task = await _add(session, project, alice, "T0")

        assigned = await move_or_update_task(
            session,
            project_id=project,
            task_id=task.id,
            actor_id=alice,
            payload=TaskUpdate(details="  notes  ", difficulty=5, assignee_id=bob),
        )
        assert assigned.details == "notes"
        assert assigned.difficulty == 5
        assert assigned.assignee_username == "bob"

        untouched = await move_or_update_task(
            session,
            project_id=project,
            task_id=task.id,
            actor_id=alice,
            payload=TaskUpdate(difficulty=3),
        )
        assert untouched.assignee_id == bob

        cleared = await move_or_update_task(
            session,
            project_id=project,
            task_id=task.id,
            actor_id=alice,
            payload=TaskUpdate.model_validate({"assignee_id": ""}),
        )
        assert cleared.assignee_id is None
        assert cleared.assignee_username is None


@pytest.mark.asyncio
async def test_assignee_must_be_project_member() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        outsider = User(subject="sub-out", username="outsider")
        session.add(outsider)
        await session.commit()
        outsider_id = outsider.id

        with pytest.raises(ValidationError):
            await _add(session, project, alice, "T0", assignee_id=outsider_id)
        assert await _bucket(session, project, "backlog") == []


@pytest.mark.asyncio
async def test_delete_middle_task_closes_gap() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        await _add(session, project, alice, "T0")
        t1 = await _add(session, project, alice, "T1")
        await _add(session, project, alice, "T2")

        bucket = await delete_task(session, project_id=project, task_id=t1.id, actor_id=alice)

        assert bucket == "backlog"
        assert await _bucket(session, project, "backlog") == [("T0", 0), ("T2", 1)]


@pytest.mark.asyncio
async def test_insert_then_remove_restores_prior_order() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        for title in ("T0", "T1", "T2", "T3"):
            await _add(session, project, alice, title)
        before = await _bucket(session, project, "backlog")

        inserted = await _add(session, project, alice, "Temp", sort_index=2)
        await delete_task(session, project_id=project, task_id=inserted.id, actor_id=alice)

        assert await _bucket(session, project, "backlog") == before


@pytest.mark.asyncio
async def test_mixed_sequence_keeps_every_bucket_dense() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        created = [await _add(session, project, alice, f"T{i}") for i in range(6)]

        await move_or_update_task(
            session,
            project_id=project,
            task_id=created[4].id,
            actor_id=alice,
            payload=TaskUpdate(status="blocked", sort_index=0),
        )
        await move_or_update_task(
            session,
            project_id=project,
            task_id=created[0].id,
            actor_id=alice,
            payload=TaskUpdate(sort_index=3),
        )
        await delete_task(session, project_id=project, task_id=created[2].id, actor_id=alice)
        await _add(session, project, alice, "Late", status="blocked", sort_index=0)
        await move_or_update_task(
            session,
            project_id=project,
            task_id=created[5].id,
            actor_id=alice,
            payload=TaskUpdate(status="blocked", sort_index=1),
        )

        for status in ("backlog", "inProgress", "blocked", "done"):
            _assert_dense(await _bucket(session, project, status))
        assert len(await _bucket(session, project, "backlog")) == 3
        assert await _bucket(session, project, "blocked") == [("Late", 0), ("T5", 1), ("T4", 2)]


@pytest.mark.asyncio
async def test_missing_task_raises_not_found() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)

        with pytest.raises(NotFoundError):
            await move_or_update_task(
                session,
                project_id=project,
                task_id=uuid4(),
                actor_id=alice,
                payload=TaskUpdate(sort_index=0),
            )
        with pytest.raises(NotFoundError):
            await delete_task(session, project_id=project, task_id=uuid4(), actor_id=alice)


@pytest.mark.asyncio
async def test_non_member_cannot_mutate_tasks() -> None:
    session_maker = await _make_session_maker()
    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        task = await _add(session, project, alice, "T0")
        mallory = User(subject="sub-mallory", username="mallory")
        session.add(mallory)
        await session.commit()
        mallory_id = mallory.id

        with pytest.raises(ForbiddenError):
            await _add(session, project, mallory_id, "Nope")
        with pytest.raises(ForbiddenError):
            await delete_task(session, project_id=project, task_id=task.id, actor_id=mallory_id)
        assert await _bucket(session, project, "backlog") == [("T0", 0)]


def test_update_payload_rejects_bad_input() -> None:
    with pytest.raises(ValueError, match="no fields to update"):
        TaskUpdate()
    with pytest.raises(ValueError):
        TaskUpdate(difficulty=6)
    with pytest.raises(ValueError):
        TaskUpdate(sort_index=-1)
    with pytest.raises(ValueError):
        TaskUpdate(status="archived")
    with pytest.raises(ValueError):
        TaskCreate(title="   ")


@pytest.mark.asyncio
async def test_concurrent_moves_and_delete_keep_bucket_dense(tmp_path: Path) -> None:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'board.db'}")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        project, (alice,) = await _seed_project(session)
        ids = {}
        for title in ("T0", "T1", "T2", "T3"):
            ids[title] = (await _add(session, project, alice, title)).id

    async def move(title: str, sort_index: int) -> None:
        async with session_maker() as session:
            await move_or_update_task(
                session,
                project_id=project,
                task_id=ids[title],
                actor_id=alice,
                payload=TaskUpdate(sort_index=sort_index),
            )

    async def remove(title: str) -> None:
        async with session_maker() as session:
            await delete_task(session, project_id=project, task_id=ids[title], actor_id=alice)

    await asyncio.gather(move("T3", 0), move("T0", 3), remove("T1"))

    async with session_maker() as session:
        rows = await _bucket(session, project, "backlog")
    await engine.dispose()

    _assert_dense(rows)
    assert sorted(title for title, _ in rows) == ["T0", "T2", "T3"]
