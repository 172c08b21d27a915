"""Reusable FastAPI dependencies for auth and sessions.

Routers resolve the actor here and pass it explicitly into service calls;
project membership is enforced inside the services themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends

from forge_api.core.auth import get_auth_context
from forge_api.db.session import get_session

if TYPE_CHECKING:
    from forge_api.core.auth import AuthContext
    from forge_api.models.users import User

AUTH_DEP = Depends(get_auth_context)
SESSION_DEP = Depends(get_session)


def require_user(auth: AuthContext = AUTH_DEP) -> User:
    """Return the authenticated user for the request."""
    return auth.user


USER_DEP = Depends(require_user)
