"""User authentication helpers for JWT and local-token auth modes."""

from __future__ import annotations

from dataclasses import dataclass
from hmac import compare_digest
from typing import TYPE_CHECKING, Literal

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError

from forge_api.core.auth_mode import AuthMode
from forge_api.core.config import settings
from forge_api.core.logging import get_logger
from forge_api.core.time import utcnow
from forge_api.db import crud
from forge_api.db.session import get_session
from forge_api.models.users import User

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)
SESSION_DEP = Depends(get_session)
LOCAL_AUTH_SUBJECT = "local-auth-user"
USERNAME_CLAIMS = ("username", "usr", "preferred_username")


class TokenPayload(BaseModel):
    """JWT claims payload shape required from identity tokens."""

    sub: str


@dataclass
class AuthContext:
    """Authenticated user context resolved from inbound auth headers."""

    actor_type: Literal["user"]
    user: User


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if not value.lower().startswith("bearer "):
        return None
    token = value.split(" ", maxsplit=1)[1].strip()
    return token or None


def _non_empty_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _extract_claim_username(claims: dict[str, object]) -> str | None:
    for key in USERNAME_CLAIMS:
        username = _non_empty_str(claims.get(key))
        if username:
            return username
    return None


def decode_token(token: str) -> dict[str, object]:
    """Verify signature, expiry, and (when configured) audience of a token."""
    options = {"require": ["sub"], "verify_aud": bool(settings.jwt_audience)}
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience or None,
        leeway=settings.jwt_leeway_seconds,
        options=options,
    )


async def _get_or_sync_user(
    session: AsyncSession,
    *,
    subject: str,
    username: str,
) -> User:
    subject_log = subject[-6:]
    try:
        user, created = await crud.get_or_create(
            session,
            User,
            subject=subject,
            defaults={"username": username},
        )
    except IntegrityError as exc:
        logger.warning("auth.user.sync.username_taken subject=%s", subject_log)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="username already taken",
        ) from exc

    if not created and user.username != username:
        user.username = username
        user.updated_at = utcnow()
        session.add(user)
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            logger.warning("auth.user.sync.username_taken subject=%s", subject_log)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="username already taken",
            ) from exc
        await session.refresh(user)
        logger.info("auth.user.sync subject=%s updated=True", subject_log)
    elif created:
        logger.info("auth.user.create subject=%s", subject_log)
    return user


async def _resolve_local_auth_context(
    *,
    request: Request,
    session: AsyncSession,
) -> AuthContext:
    token = _extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    expected = settings.local_auth_token.strip()
    if not expected or not compare_digest(token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    user = await _get_or_sync_user(
        session,
        subject=LOCAL_AUTH_SUBJECT,
        username=settings.local_auth_username,
    )
    return AuthContext(actor_type="user", user=user)


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
    session: AsyncSession = SESSION_DEP,
) -> AuthContext:
    """Resolve required authenticated user context for the configured auth mode."""
    if settings.auth_mode == AuthMode.LOCAL:
        return await _resolve_local_auth_context(request=request, session=session)

    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        claims = decode_token(credentials.credentials)
    except jwt.InvalidTokenError as exc:
        logger.info("auth.jwt.rejected reason=%s", exc.__class__.__name__)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc

    try:
        subject = TokenPayload.model_validate(claims).sub.strip()
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc
    username = _extract_claim_username(claims)
    if not subject or username is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    user = await _get_or_sync_user(session, subject=subject, username=username)
    return AuthContext(actor_type="user", user=user)
