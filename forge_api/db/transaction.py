"""Unit-of-work helper: one deadline-bounded, all-or-nothing transaction.

Every mutating service operation runs inside `transaction()`. Whatever happens
inside the block either commits as a whole or is rolled back as a whole, so
partial index shifts or half-converted invitations are never visible.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from forge_api.core.errors import ConflictError, InternalError, ServiceError
from forge_api.core.logging import get_logger
from forge_api.db.crud import is_unique_violation

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


async def _safe_rollback(session: AsyncSession, *, operation: str) -> None:
    try:
        await session.rollback()
    except SQLAlchemyError:
        logger.exception("db.transaction.rollback_failed operation=%s", operation)


@asynccontextmanager
async def transaction(
    session: AsyncSession,
    *,
    operation: str,
    timeout_seconds: float,
) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block as one transaction bounded by `timeout_seconds`.

    Error mapping on the way out:
    - `ServiceError` raised by the block propagates unchanged.
    - unique-constraint violations become `ConflictError`.
    - deadline expiry and any other store failure become `InternalError`.
    """
    try:
        async with asyncio.timeout(timeout_seconds):
            yield session
            await session.commit()
    except ServiceError:
        await _safe_rollback(session, operation=operation)
        raise
    except IntegrityError as exc:
        await _safe_rollback(session, operation=operation)
        if is_unique_violation(exc):
            logger.info("db.transaction.conflict operation=%s", operation)
            raise ConflictError from exc
        logger.exception("db.transaction.integrity_error operation=%s", operation)
        raise InternalError from exc
    except TimeoutError as exc:
        await _safe_rollback(session, operation=operation)
        logger.warning(
            "db.transaction.timeout operation=%s timeout_seconds=%s",
            operation,
            timeout_seconds,
        )
        raise InternalError from exc
    except SQLAlchemyError as exc:
        await _safe_rollback(session, operation=operation)
        logger.exception("db.transaction.failed operation=%s", operation)
        raise InternalError from exc
    except BaseException:
        await _safe_rollback(session, operation=operation)
        raise
