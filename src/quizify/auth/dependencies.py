"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.auth.jwt import verify_token
from quizify.database import get_session
from quizify.db.models import User

_bearer = HTTPBearer(auto_error=False)


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def user_from_token(db: AsyncSession, token: str) -> User:
    """Verify a bearer token and load its user. Raises HTTPException 401/403."""
    try:
        payload = verify_token(token, expected_type="access")
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token") from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Account is banned")
    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User | None:
    """The authenticated user, or None when no credentials were sent.

    A token that is present but invalid is still rejected with 401.
    """
    if credentials is None:
        return None
    return await user_from_token(db, credentials.credentials)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """Extract and verify JWT, return User model. Raises 401/403 on failure."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user
