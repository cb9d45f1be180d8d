from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.auth import RoleCreate, RoleRead, RoleUpdate
from src.services.identity import RoleService, list_permissions

router = APIRouter(prefix="/roles", tags=["Roles"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[RoleRead],
    summary="List roles",
    description="List roles with their claims.",
    dependencies=[Depends(require_permission("CanViewRoles"))],
)
async def list_roles(session: AsyncSession = Depends(get_async_session)) -> List[RoleRead]:
    return await RoleService(session).list_roles()


# PUBLIC_INTERFACE
@router.get(
    "/permissions",
    response_model=List[str],
    summary="Permission catalogue",
    description="Every permission code that can be granted through a 'Permission' claim.",
    dependencies=[Depends(require_permission("CanViewRoles"))],
)
async def permission_catalogue() -> List[str]:
    return list_permissions()


# PUBLIC_INTERFACE
@router.get(
    "/{role_id}",
    response_model=RoleRead,
    summary="Get role",
    dependencies=[Depends(require_permission("CanViewRoles"))],
)
async def get_role(
    role_id: int = Path(..., description="Role ID"),
    session: AsyncSession = Depends(get_async_session),
) -> RoleRead:
    return await RoleService(session).get_role(role_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=RoleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create role",
    description="Create a role with claims. Permission claims are also granted to Admin.",
    dependencies=[Depends(require_permission("CanManageRoles"))],
)
async def create_role(payload: RoleCreate, session: AsyncSession = Depends(get_async_session)) -> RoleRead:
    return await RoleService(session).create_role(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{role_id}",
    response_model=RoleRead,
    summary="Update role",
    description="Rename a role and/or replace its claims. Admin cannot be edited; User cannot be renamed.",
    dependencies=[Depends(require_permission("CanManageRoles"))],
)
async def update_role(
    payload: RoleUpdate,
    role_id: int = Path(..., description="Role ID"),
    session: AsyncSession = Depends(get_async_session),
) -> RoleRead:
    return await RoleService(session).update_role(role_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete role",
    description="Delete a role and move its members to the User role. Admin and User cannot be deleted.",
    dependencies=[Depends(require_permission("CanManageRoles"))],
)
async def delete_role(
    role_id: int = Path(..., description="Role ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await RoleService(session).delete_role(role_id)
