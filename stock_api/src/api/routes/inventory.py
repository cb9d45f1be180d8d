from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.models.inventory import StockMovementType
from src.db.session import get_async_session
from src.schemas.inventory import StockMovementCreate, StockMovementRead
from src.services.inventory import StockMovementService

router = APIRouter(prefix="/stock-movements", tags=["Stock Movements"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[StockMovementRead],
    summary="List stock movements",
    description="List stock movements newest first, with product and category context.",
    dependencies=[Depends(require_permission("CanViewStockMovements"))],
)
async def list_stock_movements(
    session: AsyncSession = Depends(get_async_session),
    product_id: Optional[int] = Query(None, description="Filter by product"),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    type: Optional[StockMovementType] = Query(None, description="1 = In, 2 = Out"),
    start_date: Optional[datetime] = Query(None, description="Created at or after (ISO 8601)"),
    end_date: Optional[datetime] = Query(None, description="Created at or before (ISO 8601)"),
    search: Optional[str] = Query(None, description="Matches product name or description"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[StockMovementRead]:
    """
    Return ledger entries matching the filters.

    Returns:
        List[StockMovementRead]: Movements ordered by created_at descending.
    """
    return await StockMovementService(session).list_movements(
        product_id=product_id,
        category_id=category_id,
        movement_type=type,
        start_date=start_date,
        end_date=end_date,
        search=search,
        limit=limit,
        offset=offset,
    )


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=StockMovementRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record stock movement",
    description=(
        "Record an inbound or outbound movement and adjust the product's stock. "
        "Outbound movements larger than the current stock are rejected."
    ),
    dependencies=[Depends(require_permission("CanManageStockMovements"))],
)
async def create_stock_movement(
    payload: StockMovementCreate,
    session: AsyncSession = Depends(get_async_session),
) -> StockMovementRead:
    return await StockMovementService(session).create_movement(payload)
