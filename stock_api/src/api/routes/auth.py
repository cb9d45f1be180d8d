from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user
from src.db.models.security import User
from src.db.session import get_async_session
from src.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForceChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    UserInfo,
)
from src.schemas.common import MessageResponse
from src.services.identity import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Authenticate with email and password and receive an access token and a refresh token.",
)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_async_session)) -> AuthResponse:
    return await AuthService(session).login(payload.email, payload.password)


# PUBLIC_INTERFACE
@router.post(
    "/token",
    response_model=AuthResponse,
    summary="Login (OAuth2 form)",
    description="OAuth2 password form variant of /login used by the interactive docs. 'username' carries the email.",
)
async def login_form(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_async_session),
) -> AuthResponse:
    return await AuthService(session).login(form_data.username, form_data.password)


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=AuthResponse,
    summary="Refresh tokens",
    description="Exchange a refresh token for a new token pair. The presented refresh token is invalidated.",
)
async def refresh_tokens(payload: RefreshRequest, session: AsyncSession = Depends(get_async_session)) -> AuthResponse:
    return await AuthService(session).refresh(payload.refresh_token)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout",
    description="Revoke the current user's refresh token. The access token stays valid until it expires.",
)
async def logout(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    await AuthService(session).logout(user)
    return MessageResponse(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=UserInfo,
    summary="Read current user",
    description="Return the authenticated user with their roles.",
)
async def read_current_user(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> UserInfo:
    return await AuthService(session).me(user)


# PUBLIC_INTERFACE
@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
    description="Change the password after verifying the current one.",
)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    await AuthService(session).change_password(user, payload)
    return MessageResponse(message="Password changed")


# PUBLIC_INTERFACE
@router.post(
    "/force-change-password",
    response_model=MessageResponse,
    summary="Set a new password",
    description="Set a new password without the current one; used when the account must change its password.",
)
async def force_change_password(
    payload: ForceChangePasswordRequest,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    await AuthService(session).force_change_password(user, payload)
    return MessageResponse(message="Password changed")
