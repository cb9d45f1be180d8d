from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.catalog import CategoryCreate, CategoryRead, CategoryUpdate
from src.services.catalog import CategoryService

router = APIRouter(prefix="/categories", tags=["Categories"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[CategoryRead],
    summary="List categories",
    description="List categories with the total stock of their products, most recently updated first.",
    dependencies=[Depends(require_permission("CanViewCategories"))],
)
async def list_categories(
    session: AsyncSession = Depends(get_async_session),
    search: Optional[str] = Query(None, description="Case-insensitive substring of the name"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[CategoryRead]:
    return await CategoryService(session).list_categories(search=search, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.get(
    "/{category_id}",
    response_model=CategoryRead,
    summary="Get category",
    dependencies=[Depends(require_permission("CanViewCategories"))],
)
async def get_category(
    category_id: int = Path(..., description="Category ID"),
    session: AsyncSession = Depends(get_async_session),
) -> CategoryRead:
    return await CategoryService(session).get_category(category_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
    dependencies=[Depends(require_permission("CanManageCategories"))],
)
async def create_category(payload: CategoryCreate, session: AsyncSession = Depends(get_async_session)) -> CategoryRead:
    return await CategoryService(session).create_category(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{category_id}",
    response_model=CategoryRead,
    summary="Rename category",
    dependencies=[Depends(require_permission("CanManageCategories"))],
)
async def update_category(
    payload: CategoryUpdate,
    category_id: int = Path(..., description="Category ID"),
    session: AsyncSession = Depends(get_async_session),
) -> CategoryRead:
    return await CategoryService(session).update_category(category_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete category",
    description="Delete the category together with its products and their movements, attributes and price history.",
    dependencies=[Depends(require_permission("CanManageCategories"))],
)
async def delete_category(
    category_id: int = Path(..., description="Category ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await CategoryService(session).delete_category(category_id)
