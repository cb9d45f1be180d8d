from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission, require_roles
from src.db.session import get_async_session
from src.repositories.security import ADMIN_ROLE_NAME
from src.schemas.auth import ClaimItem, UserCreate, UserRead, UserUpdate
from src.services.identity import UserAdminService

router = APIRouter(prefix="/users", tags=["Users"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[UserRead],
    summary="List users",
    description="List users with their roles and direct claims. Admin only.",
    dependencies=[Depends(require_roles(ADMIN_ROLE_NAME))],
)
async def list_users(
    session: AsyncSession = Depends(get_async_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[UserRead]:
    return await UserAdminService(session).list_users(limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.get(
    "/{user_id}",
    response_model=UserRead,
    summary="Get user",
    dependencies=[Depends(require_roles(ADMIN_ROLE_NAME))],
)
async def get_user(
    user_id: int = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_async_session),
) -> UserRead:
    return await UserAdminService(session).get_user(user_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Create a user with a single role (Admin, Manager or User). The password must be changed at first login by default.",
    dependencies=[Depends(require_permission("CanCreateUser"))],
)
async def create_user(payload: UserCreate, session: AsyncSession = Depends(get_async_session)) -> UserRead:
    return await UserAdminService(session).create_user(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{user_id}",
    response_model=UserRead,
    summary="Update user",
    description="Partially update a user. A new email also becomes the username; a role replaces the current one.",
    dependencies=[Depends(require_permission("CanManageUsers"))],
)
async def update_user(
    payload: UserUpdate,
    user_id: int = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_async_session),
) -> UserRead:
    return await UserAdminService(session).update_user(user_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete user",
    dependencies=[Depends(require_permission("CanManageUsers"))],
)
async def delete_user(
    user_id: int = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await UserAdminService(session).delete_user(user_id)


# PUBLIC_INTERFACE
@router.post(
    "/{user_id}/claims",
    response_model=UserRead,
    summary="Assign claim",
    description="Grant a direct claim to the user, e.g. {'type': 'Permission', 'value': 'CanViewReports'}.",
    dependencies=[Depends(require_permission("CanManageUsers"))],
)
async def assign_claim(
    claim: ClaimItem,
    user_id: int = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_async_session),
) -> UserRead:
    return await UserAdminService(session).assign_claim(user_id, claim)


# PUBLIC_INTERFACE
@router.delete(
    "/{user_id}/claims/{claim_type}",
    response_model=UserRead,
    summary="Remove claims",
    description="Remove every direct claim of the given type from the user.",
    dependencies=[Depends(require_permission("CanManageUsers"))],
)
async def remove_claim(
    user_id: int = Path(..., description="User ID"),
    claim_type: str = Path(..., description="Claim type"),
    session: AsyncSession = Depends(get_async_session),
) -> UserRead:
    return await UserAdminService(session).remove_claim(user_id, claim_type)
