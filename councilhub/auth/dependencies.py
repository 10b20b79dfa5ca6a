from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.auth import security
from councilhub.db.dependencies import get_db_session
from councilhub.members.models import User
from councilhub.settings import settings

# Bearer tokens for the API; the admin console sends the same JWT in a cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/token", auto_error=False)


async def user_from_token(session: AsyncSession, token: Optional[str]) -> Optional[User]:
    """Resolve an access token to an active user, or None."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, security.SECRET_KEY, algorithms=[security.ALGORITHM])
        if payload.get("type") != "access":
            return None
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None
    user = await session.get(User, user_id)
    if user is None or not user.active:
        return None
    return user


async def get_current_user_db(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Dependency that decodes a JWT token and returns the SQLAlchemy User.

    Falls back to the session cookie so console pages and fetches from them
    authenticate the same way.
    """
    token = token or request.cookies.get(settings.session_cookie_name)
    user = await user_from_token(session, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Cookie-based lookup for server-rendered pages; never raises."""
    return await user_from_token(session, request.cookies.get(settings.session_cookie_name))
