"""FastAPI application entrypoint and router wiring for the board API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import literal
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from forge_api.api.deps import SESSION_DEP
from forge_api.api.invites import router as invites_router
from forge_api.api.projects import router as projects_router
from forge_api.api.tasks import router as tasks_router
from forge_api.api.users import router as users_router
from forge_api.core.config import settings
from forge_api.core.error_handling import install_error_handling
from forge_api.core.logging import configure_logging, get_logger
from forge_api.db.session import init_db
from forge_api.schemas.health import HealthStatusResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlmodel.ext.asyncio.session import AsyncSession

configure_logging()
logger = get_logger(__name__)
OPENAPI_TAGS = [
    {
        "name": "health",
        "description": "Liveness probes and a database-backed readiness probe.",
    },
    {
        "name": "projects",
        "description": "Project creation and full board snapshots for members.",
    },
    {
        "name": "tasks",
        "description": "Ordered task create, move, update, and delete within project buckets.",
    },
    {
        "name": "invites",
        "description": "Project invitations and their conversion into memberships.",
    },
    {
        "name": "users",
        "description": "Authenticated user profile reads.",
    },
]
_HEALTH_RESPONSES = {
    status.HTTP_200_OK: {
        "description": "Probe passed.",
        "content": {"application/json": {"example": {"ok": True}}},
    },
}


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize application resources before serving requests."""
    logger.info(
        "app.lifecycle.starting environment=%s db_auto_migrate=%s",
        settings.environment,
        settings.db_auto_migrate,
    )
    await init_db()
    logger.info("app.lifecycle.started")
    try:
        yield
    finally:
        logger.info("app.lifecycle.stopped")


app = FastAPI(
    title="Forge Board API",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("app.cors.enabled origins_count=%s", len(origins))
else:
    logger.info("app.cors.disabled")

install_error_handling(app)


def _liveness() -> HealthStatusResponse:
    return HealthStatusResponse(ok=True)


for _path in ("/health", "/healthz"):
    app.add_api_route(
        _path,
        _liveness,
        methods=["GET"],
        tags=["health"],
        response_model=HealthStatusResponse,
        summary="Liveness",
        responses=_HEALTH_RESPONSES,
    )


@app.get(
    "/readyz",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Readiness",
    responses={
        **_HEALTH_RESPONSES,
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database unreachable."},
    },
)
async def readyz(session: AsyncSession = SESSION_DEP) -> HealthStatusResponse:
    """Ready once the database answers a trivial query."""
    try:
        await session.exec(select(literal(1)))
    except SQLAlchemyError as exc:
        logger.warning("app.readyz.db_unavailable error=%s", exc.__class__.__name__)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE) from exc
    return HealthStatusResponse(ok=True)


api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(projects_router)
api_v1.include_router(tasks_router)
api_v1.include_router(invites_router)
api_v1.include_router(users_router)
app.include_router(api_v1)

logger.debug("app.routes.registered count=%s", len(app.routes))
