from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.catalog import ProductAttributeCreate, ProductAttributeRead, ProductAttributeUpdate
from src.services.catalog import ProductAttributeService

router = APIRouter(prefix="/product-attributes", tags=["Product Attributes"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ProductAttributeRead],
    summary="List product attributes",
    dependencies=[Depends(require_permission("CanViewProductAttributes"))],
)
async def list_attributes(
    session: AsyncSession = Depends(get_async_session),
    product_id: Optional[int] = Query(None, description="Filter by product"),
    search: Optional[str] = Query(None, description="Matches key, value or product name"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[ProductAttributeRead]:
    return await ProductAttributeService(session).list_attributes(
        product_id=product_id, search=search, limit=limit, offset=offset
    )


# PUBLIC_INTERFACE
@router.get(
    "/{attribute_id}",
    response_model=ProductAttributeRead,
    summary="Get product attribute",
    dependencies=[Depends(require_permission("CanViewProductAttributes"))],
)
async def get_attribute(
    attribute_id: int = Path(..., description="Attribute ID"),
    session: AsyncSession = Depends(get_async_session),
) -> ProductAttributeRead:
    return await ProductAttributeService(session).get_attribute(attribute_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ProductAttributeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create product attribute",
    dependencies=[Depends(require_permission("CanManageProductAttributes"))],
)
async def create_attribute(
    payload: ProductAttributeCreate,
    session: AsyncSession = Depends(get_async_session),
) -> ProductAttributeRead:
    return await ProductAttributeService(session).create_attribute(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{attribute_id}",
    response_model=ProductAttributeRead,
    summary="Update product attribute",
    dependencies=[Depends(require_permission("CanManageProductAttributes"))],
)
async def update_attribute(
    payload: ProductAttributeUpdate,
    attribute_id: int = Path(..., description="Attribute ID"),
    session: AsyncSession = Depends(get_async_session),
) -> ProductAttributeRead:
    return await ProductAttributeService(session).update_attribute(attribute_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{attribute_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete product attribute",
    dependencies=[Depends(require_permission("CanManageProductAttributes"))],
)
async def delete_attribute(
    attribute_id: int = Path(..., description="Attribute ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await ProductAttributeService(session).delete_attribute(attribute_id)
