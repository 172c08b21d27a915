"""Generic persistence helpers shared across services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, select

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlmodel.ext.asyncio.session import AsyncSession

ModelT = TypeVar("ModelT", bound=SQLModel)

_UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return whether an integrity error came from a unique constraint/index."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    if getattr(orig, "pgcode", None) == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "UNIQUE constraint failed" in str(orig)


def dialect_name(session: AsyncSession) -> str:
    """Return the SQL dialect name the session is bound to."""
    return session.get_bind().dialect.name


async def get_or_create(
    session: AsyncSession,
    model: type[ModelT],
    *,
    defaults: Mapping[str, Any] | None = None,
    **lookup: Any,
) -> tuple[ModelT, bool]:
    """Fetch a row matching `lookup` or insert and commit one, tolerating insert races."""
    existing = (await session.exec(select(model).filter_by(**lookup))).first()
    if existing is not None:
        return existing, False

    obj = model(**lookup, **dict(defaults or {}))
    session.add(obj)
    try:
        await session.commit()
        await session.refresh(obj)
    except IntegrityError:
        await session.rollback()
        existing = (await session.exec(select(model).filter_by(**lookup))).first()
        if existing is None:
            raise
        return existing, False
    return obj, True


async def insert_ignore(
    session: AsyncSession,
    model: type[SQLModel],
    values: Mapping[str, Any],
    *,
    conflict_columns: Sequence[str],
) -> bool:
    """Insert a row unless it collides on `conflict_columns`.

    Returns True when a row was written. Uses the dialect's native
    `ON CONFLICT DO NOTHING` so the statement never aborts the transaction.
    """
    table = model.__table__  # type: ignore[attr-defined]
    name = dialect_name(session)
    if name == "postgresql":
        statement = postgresql.insert(table).values(**values)
    elif name == "sqlite":
        statement = sqlite.insert(table).values(**values)
    else:
        msg = f"insert_ignore is not supported for dialect {name!r}"
        raise NotImplementedError(msg)
    statement = statement.on_conflict_do_nothing(index_elements=list(conflict_columns))
    result = await session.exec(statement)
    return bool(result.rowcount)
