"""Async engine construction, schema bootstrap, and request-scoped sessions."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from forge_api import models as _models
from forge_api.core.config import settings
from forge_api.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.engine import Connection

# Import model modules so SQLModel metadata is fully registered at startup.
_MODEL_REGISTRY = _models

logger = get_logger(__name__)


def _normalize_database_url(database_url: str) -> str:
    if "://" not in database_url:
        return database_url
    scheme, rest = database_url.split("://", 1)
    if scheme in {"postgresql", "postgres"}:
        return f"postgresql+psycopg://{rest}"
    return database_url


def configure_sqlite_write_locking(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the database write lock up front.

    The sqlite3 driver defers BEGIN until the first write, so reads that pick
    bucket sizes and indexes would otherwise run outside any lock. With the
    driver's implicit transactions disabled, each transaction starts with
    `BEGIN IMMEDIATE` and concurrent unit-of-work blocks run one at a time.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> AsyncEngine:
    """Create the application engine for `database_url`."""
    url = _normalize_database_url(database_url)
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["timeout"] = settings.db_sqlite_busy_timeout_seconds
    engine = create_async_engine(url, pool_pre_ping=True, connect_args=connect_args)
    configure_sqlite_write_locking(engine)
    return engine


async_engine: AsyncEngine = build_engine(settings.database_url)
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _alembic_config() -> Config:
    alembic_ini = Path(settings.alembic_config_path).expanduser()
    if not alembic_ini.is_file():
        msg = f"alembic config not found at {alembic_ini}; set ALEMBIC_CONFIG_PATH"
        raise RuntimeError(msg)
    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def run_migrations(alembic_cfg: Config) -> None:
    """Apply Alembic migrations to the latest revision."""
    from alembic import command

    logger.info("db.migrations.start")
    command.upgrade(alembic_cfg, "head")
    logger.info("db.migrations.complete")


async def init_db() -> None:
    """Bring the schema up to date.

    With auto-migrate on, the configured Alembic tree is required and applied.
    Otherwise the tables are created directly from model metadata.
    """
    if settings.db_auto_migrate:
        alembic_cfg = _alembic_config()
        heads = ScriptDirectory.from_config(alembic_cfg).get_heads()
        if not heads:
            msg = f"no migration revisions under {alembic_cfg.get_main_option('script_location')}"
            raise RuntimeError(msg)
        logger.info("db.init.migrate heads=%s", ",".join(heads))
        await asyncio.to_thread(run_migrations, alembic_cfg)
        return

    logger.info("db.init.create_all")
    async with async_engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session, rolling back anything left open."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                try:
                    await session.rollback()
                except SQLAlchemyError:
                    logger.exception("db.session.rollback_failed")
