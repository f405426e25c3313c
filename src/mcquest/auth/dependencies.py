"""FastAPI authentication and role dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.jwt import verify_token
from mcquest.database import get_session
from mcquest.db.models import ROLE_ADMIN, ROLE_SYSTEM, User
from mcquest.users.service import get_user_by_id

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Extract and verify the bearer JWT, return the User. Raises 401 on failure."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*roles: str) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits only users holding one of ``roles``."""

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail=f"Requires role: {' or '.join(roles)}")
        return user

    return _dependency


require_admin = require_roles(ROLE_ADMIN)
require_system = require_roles(ROLE_SYSTEM)
require_admin_or_system = require_roles(ROLE_ADMIN, ROLE_SYSTEM)
