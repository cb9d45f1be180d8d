from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, func, or_, select, update

from src.db.models.catalog import Category, Product
from src.db.models.inventory import StockMovement, StockMovementType
from .base import BaseRepository

# (movement, product name, category name, product stock quantity, product low-stock threshold)
MovementRow = Tuple[StockMovement, str, str, int, int]


class StockMovementRepository(BaseRepository):
    """Repository for the stock movement ledger."""

    def _with_product(self):
        return (
            select(
                StockMovement,
                Product.name,
                Category.name,
                Product.stock_quantity,
                Product.low_stock_threshold,
            )
            .join(Product, Product.id == StockMovement.product_id)
            .join(Category, Category.id == StockMovement.category_id)
        )

    async def list_movements(
        self,
        *,
        product_id: Optional[int] = None,
        category_id: Optional[int] = None,
        movement_type: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        product_keyword: Optional[str] = None,
        category_keyword: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MovementRow]:
        stmt = self._with_product()
        if product_id is not None:
            stmt = stmt.where(StockMovement.product_id == product_id)
        if category_id is not None:
            stmt = stmt.where(StockMovement.category_id == category_id)
        if movement_type is not None:
            stmt = stmt.where(StockMovement.type == int(movement_type))
        if start_date is not None:
            stmt = stmt.where(StockMovement.created_at >= start_date)
        if end_date is not None:
            stmt = stmt.where(StockMovement.created_at <= end_date)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(Product.name.ilike(pattern), StockMovement.description.ilike(pattern)))
        if product_keyword and product_keyword.strip():
            stmt = stmt.where(Product.name.ilike(f"%{product_keyword.strip()}%"))
        if category_keyword and category_keyword.strip():
            stmt = stmt.where(Category.name.ilike(f"%{category_keyword.strip()}%"))
        stmt = stmt.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).offset(offset).limit(limit)
        res = await self.execute(stmt)
        return [(m, p, c, qty, thr) for m, p, c, qty, thr in res.all()]

    async def get_with_product(self, movement_id: int) -> Optional[MovementRow]:
        res = await self.execute(self._with_product().where(StockMovement.id == movement_id))
        row = res.first()
        return (row[0], row[1], row[2], row[3], row[4]) if row else None

    async def recent(self, limit: int = 10) -> List[MovementRow]:
        return await self.list_movements(limit=limit)

    async def last_for_product(self, product_id: int) -> Optional[StockMovement]:
        stmt = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def count(self) -> int:
        return await self.scalar_int(select(func.count(StockMovement.id)))

    async def total_purchase_spent(self) -> float:
        stmt = select(func.coalesce(func.sum(StockMovement.unit_price * StockMovement.quantity), 0)).where(
            StockMovement.type == int(StockMovementType.IN)
        )
        res = await self.execute(stmt)
        return float(res.scalar_one() or 0)

    async def list_since(self, since: datetime) -> List[Tuple[datetime, int, int]]:
        """(created_at, type, quantity) for every movement at or after `since`."""
        stmt = (
            select(StockMovement.created_at, StockMovement.type, StockMovement.quantity)
            .where(StockMovement.created_at >= since)
            .order_by(StockMovement.created_at)
        )
        res = await self.execute(stmt)
        return [(at, t, q) for at, t, q in res.all()]

    async def most_active_products(self, limit: int = 5) -> List[Tuple[int, str, str, str, int, int, int]]:
        """(product id, name, stock code, category name, movement count, total in, total out), busiest first."""
        in_qty = func.coalesce(
            func.sum(case((StockMovement.type == int(StockMovementType.IN), StockMovement.quantity), else_=0)), 0
        )
        out_qty = func.coalesce(
            func.sum(case((StockMovement.type == int(StockMovementType.OUT), StockMovement.quantity), else_=0)), 0
        )
        count = func.count(StockMovement.id)
        stmt = (
            select(Product.id, Product.name, Product.stock_code, Category.name, count, in_qty, out_qty)
            .select_from(StockMovement)
            .join(Product, Product.id == StockMovement.product_id)
            .join(Category, Category.id == Product.category_id)
            .group_by(Product.id, Product.name, Product.stock_code, Category.name)
            .order_by(count.desc(), Product.name)
            .limit(limit)
        )
        res = await self.execute(stmt)
        return [
            (pid, name, code, cat, int(n), int(i), int(o))
            for pid, name, code, cat, n, i, o in res.all()
        ]

    async def reassign_category(self, product_id: int, category_id: int) -> None:
        """Point every movement of the product at its new category."""
        await self.execute(
            update(StockMovement)
            .where(StockMovement.product_id == product_id)
            .values(category_id=category_id)
            .execution_options(synchronize_session="fetch")
        )
