from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import user_id_var
from src.core.security import get_token_subject
from src.db.models.security import User
from src.db.session import get_async_session
from src.repositories.security import ADMIN_ROLE_NAME, SecurityRepository

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); login endpoint path referenced here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# PUBLIC_INTERFACE
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    """
    Resolve and return the current user from the Authorization bearer token.

    Raises:
        HTTPException: 401 when the token is invalid/expired, not an access token,
        or the user no longer exists or is deactivated.
    """
    try:
        subject = get_token_subject(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        user_id = int(subject)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    repo = SecurityRepository(session)
    user = await repo.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")

    user_id_var.set(str(user.id))
    return user


# PUBLIC_INTERFACE
async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to hold one of the specified roles.
    """

    async def _dep(user: User = Depends(get_current_active_user), session: AsyncSession = Depends(get_async_session)):
        repo = SecurityRepository(session)
        role_set = {r.name for r in await repo.list_roles_for_user(user.id)}
        if role_set.isdisjoint(set(required)):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return True

    return _dep


# PUBLIC_INTERFACE
def require_permission(code: str):
    """
    Create a dependency that requires the current user to hold a permission claim.

    The check passes when the user is in the Admin role, when their role carries a
    Permission claim with this code, or when the claim was granted to the user directly.
    """

    async def _dep(user: User = Depends(get_current_active_user), session: AsyncSession = Depends(get_async_session)):
        repo = SecurityRepository(session)
        roles = await repo.list_roles_for_user(user.id)
        if any(r.name == ADMIN_ROLE_NAME for r in roles):
            return True
        granted = await repo.list_permission_codes_for_user(user.id)
        if code not in granted:
            logger.info("Permission denied: user=%s permission=%s", user.id, code)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return True

    return _dep
