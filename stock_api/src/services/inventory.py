from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from src.core.errors import BusinessRuleError, NotFoundError
from src.db.models.inventory import StockMovement, StockMovementType
from src.repositories.catalog import ProductRepository
from src.repositories.inventory import MovementRow, StockMovementRepository
from src.schemas.inventory import StockMovementCreate, StockMovementRead
from src.services.base import BaseService
from src.services.dashboard import as_utc, movement_type_text, publish_dashboard_refresh

logger = logging.getLogger(__name__)


def movement_read(row: MovementRow) -> StockMovementRead:
    movement, product_name, category_name, stock_quantity, threshold = row
    unit_price = round(float(movement.unit_price or 0), 2)
    return StockMovementRead(
        id=movement.id,
        product_id=movement.product_id,
        product_name=product_name,
        category_id=movement.category_id,
        category_name=category_name,
        type=StockMovementType(movement.type),
        type_text=movement_type_text(movement.type),
        quantity=movement.quantity,
        unit_price=unit_price,
        total_value=round(unit_price * movement.quantity, 2),
        description=movement.description,
        current_stock_quantity=stock_quantity,
        low_stock_threshold=threshold,
        created_at=as_utc(movement.created_at),
    )


class StockMovementService(BaseService):
    """
    Stock movement ledger use cases.

    Movements are the only way product stock changes after creation; an outbound
    movement can never take stock below zero.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = StockMovementRepository(session)
        self.products = ProductRepository(session)

    # PUBLIC_INTERFACE
    async def list_movements(
        self,
        *,
        product_id: Optional[int] = None,
        category_id: Optional[int] = None,
        movement_type: Optional[StockMovementType] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[StockMovementRead]:
        rows = await self.repo.list_movements(
            product_id=product_id,
            category_id=category_id,
            movement_type=movement_type,
            start_date=start_date,
            end_date=end_date,
            search=search,
            limit=limit,
            offset=offset,
        )
        return [movement_read(r) for r in rows]

    # PUBLIC_INTERFACE
    async def create_movement(self, payload: StockMovementCreate) -> StockMovementRead:
        """
        Record a movement and adjust the product's stock.

        Raises:
            NotFoundError: product does not exist.
            BusinessRuleError: quantity is not positive, or an outbound quantity exceeds stock.
        """
        if payload.quantity <= 0:
            raise BusinessRuleError("Quantity must be greater than 0.")
        product = await self.products.get(payload.product_id)
        if not product:
            raise NotFoundError(f"Product with ID {payload.product_id} not found.")

        movement_type = StockMovementType(payload.type)
        if movement_type == StockMovementType.OUT and product.stock_quantity < payload.quantity:
            raise BusinessRuleError(
                f"Insufficient stock! Current: {product.stock_quantity}, requested: {payload.quantity}"
            )

        if payload.unit_price is not None:
            unit_price = payload.unit_price
        elif movement_type == StockMovementType.IN:
            unit_price = product.current_purchase_price or 0
        else:
            unit_price = product.current_sale_price or 0

        movement = StockMovement(
            product_id=product.id,
            category_id=product.category_id,
            type=int(movement_type),
            quantity=payload.quantity,
            unit_price=unit_price,
            description=payload.description,
        )
        delta = payload.quantity if movement_type == StockMovementType.IN else -payload.quantity
        new_quantity = await self.products.apply_stock_delta(product.id, delta)
        if new_quantity is None:
            current = await self.products.current_stock(product.id)
            if current is None:
                raise NotFoundError(f"Product with ID {payload.product_id} not found.")
            raise BusinessRuleError(f"Insufficient stock! Current: {current}, requested: {payload.quantity}")
        set_committed_value(product, "stock_quantity", new_quantity)

        await self.repo.add(movement)
        await self.commit()
        logger.info(
            "Stock movement recorded: product=%s type=%s qty=%s stock_now=%s",
            product.id,
            movement_type.name,
            payload.quantity,
            product.stock_quantity,
        )

        row = await self.repo.get_with_product(movement.id)
        assert row is not None
        result = movement_read(row)
        await publish_dashboard_refresh(self.session)
        await self._publish("stock_movement.created", result.model_dump(mode="json"))
        return result
