from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.catalog import (
    CriticalProductRead,
    ProductCreate,
    ProductDetail,
    ProductPriceRead,
    ProductRead,
    ProductUpdate,
)
from src.services.catalog import ProductService

router = APIRouter(prefix="/products", tags=["Products"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ProductRead],
    summary="List products",
    description="List products with category and location names, most recently updated first.",
    dependencies=[Depends(require_permission("CanViewProducts"))],
)
async def list_products(
    session: AsyncSession = Depends(get_async_session),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    location_id: Optional[int] = Query(None, description="Filter by location"),
    search: Optional[str] = Query(None, description="Matches name, description, stock code or location name"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[ProductRead]:
    return await ProductService(session).list_products(
        category_id=category_id,
        location_id=location_id,
        search=search,
        limit=limit,
        offset=offset,
    )


# PUBLIC_INTERFACE
@router.get(
    "/critical",
    response_model=List[CriticalProductRead],
    summary="Critical stock",
    description="Products under their low-stock threshold, largest shortfall first.",
    dependencies=[Depends(require_permission("CanViewProducts"))],
)
async def list_critical_products(
    session: AsyncSession = Depends(get_async_session),
    limit: Optional[int] = Query(None, ge=1, le=1000),
) -> List[CriticalProductRead]:
    return await ProductService(session).list_critical(limit=limit)


# PUBLIC_INTERFACE
@router.get(
    "/{product_id}",
    response_model=ProductDetail,
    summary="Get product",
    description="Product with its attributes and price history (newest first).",
    dependencies=[Depends(require_permission("CanViewProducts"))],
)
async def get_product(
    product_id: int = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_async_session),
) -> ProductDetail:
    return await ProductService(session).get_product(product_id)


# PUBLIC_INTERFACE
@router.get(
    "/{product_id}/price-history",
    response_model=List[ProductPriceRead],
    summary="Price history",
    dependencies=[Depends(require_permission("CanViewProducts"))],
)
async def get_price_history(
    product_id: int = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_async_session),
) -> List[ProductPriceRead]:
    return await ProductService(session).price_history(product_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ProductDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
    description=(
        "Create a product with a generated stock code. The opening prices are recorded in the price "
        "history and a positive opening quantity is booked as an inbound stock movement."
    ),
    dependencies=[Depends(require_permission("CanManageProducts"))],
)
async def create_product(payload: ProductCreate, session: AsyncSession = Depends(get_async_session)) -> ProductDetail:
    return await ProductService(session).create_product(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{product_id}",
    response_model=ProductDetail,
    summary="Update product",
    description="Partial update. location_id = -1 clears the location; stock changes only through stock movements.",
    dependencies=[Depends(require_permission("CanManageProducts"))],
)
async def update_product(
    payload: ProductUpdate,
    product_id: int = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_async_session),
) -> ProductDetail:
    return await ProductService(session).update_product(product_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete product",
    description="Delete the product with its stock movements, attributes and price history.",
    dependencies=[Depends(require_permission("CanManageProducts"))],
)
async def delete_product(
    product_id: int = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await ProductService(session).delete_product(product_id)
